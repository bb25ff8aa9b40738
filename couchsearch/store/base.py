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
from typing import Any, Awaitable, Callable

from couchsearch.config import CouchbaseSettings
from couchsearch.models import ViewDocument


class DocumentStore(ABC):
    """Opened connection to a document store that supports view (design) documents"""

    @property
    @abstractmethod
    def handle(self) -> Any:
        """The underlying client object handed to the application"""

    @abstractmethod
    async def upsert_view_document(self, name: str, view_document: ViewDocument) -> None:
        """Create or fully replace the design document ``name``"""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection"""


StoreOpener = Callable[[CouchbaseSettings], Awaitable[DocumentStore]]
