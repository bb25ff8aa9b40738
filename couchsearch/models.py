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

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Field every stored record carries to name its collection type
DISCRIMINATOR_FIELD = "_TYPE"

DEFAULT_UPDATE_INTERVAL = 2500
DEFAULT_UPDATE_MIN_CHANGES = 5000
DEFAULT_REPLICA_UPDATE_MIN_CHANGES = 5000


@dataclass(frozen=True)
class CollectionDescriptor:
    """A record type supplied by the application, with its optional search field schema"""

    name: str
    schema: Optional[Any] = None


@dataclass(frozen=True)
class ViewOptions:
    """Index update options attached to the design document"""

    update_interval: int = DEFAULT_UPDATE_INTERVAL
    update_min_changes: int = DEFAULT_UPDATE_MIN_CHANGES
    replica_update_min_changes: int = DEFAULT_REPLICA_UPDATE_MIN_CHANGES

    def to_dict(self) -> Dict[str, int]:
        return {
            "updateInterval": self.update_interval,
            "updateMinChanges": self.update_min_changes,
            "replicaUpdateMinChanges": self.replica_update_min_changes,
        }


@dataclass(frozen=True)
class ViewDefinition:
    map: str

    def to_dict(self) -> Dict[str, str]:
        return {"map": self.map}


@dataclass
class ViewDocument:
    """
    One design document holding a view per collection type.

    The serialized form is what the document store receives:
    ``{"views": {<type>: {"map": ...}}, "options": {...}}``.
    """

    views: Dict[str, ViewDefinition] = field(default_factory=dict)
    options: ViewOptions = field(default_factory=ViewOptions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "views": {name: view.to_dict() for name, view in self.views.items()},
            "options": self.options.to_dict(),
        }

    def to_json(self) -> str:
        """Canonical JSON, identical across derivations of the same collection set"""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


@dataclass
class MappingSpec:
    """Field mapping for one record type inside the search index"""

    index: str
    type: str
    properties: Dict[str, Any]

    def to_body(self) -> Dict[str, Any]:
        return {"properties": self.properties}


@dataclass
class BootstrapResult:
    """Handles produced by a successful bootstrap. ``store`` and ``engine`` are the opened clients."""

    store: Any
    engine: Any

    async def close(self):
        """Release both clients; a failure on one side does not keep the other open"""
        for name, client in (("store", self.store), ("engine", self.engine)):
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"Failed to close {name} client: {e}")
