# Copyright 2025 ApeCloud, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Set

from couchsearch.config import ElasticsearchSettings

# Settings applied when the index is created for the first time
BASELINE_INDEX_SETTINGS = {
    "number_of_shards": 5,
    "number_of_replicas": 0,
}


class SearchEngine(ABC):
    """Search engine client bound to one index, with per-type mappings recorded on it"""

    index: str

    @property
    @abstractmethod
    def handle(self) -> Any:
        """The underlying client object handed to the application"""

    @abstractmethod
    async def index_exists(self, index: str) -> bool:
        pass

    @abstractmethod
    async def create_index(self, index: str, settings: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def get_mappings(self, index: str) -> Set[str]:
        """Names of the mapping types currently defined on ``index``"""

    @abstractmethod
    async def put_mapping(self, index: str, type_name: str, body: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete_mapping(self, index: str, type_name: str) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


EngineFactory = Callable[[ElasticsearchSettings], SearchEngine]
