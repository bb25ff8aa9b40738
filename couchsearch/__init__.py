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

"""
Couchbase + Elasticsearch schema bootstrap

Makes a set of application collections queryable across a Couchbase bucket
and an Elasticsearch index:

- derivation: pure view document and mapping spec derivation
- store: opens the bucket and installs the combined design document
- engine: ensures the index exists and reconciles per-type mappings
- connection: Bootstrapper, sequencing both sides into one BootstrapResult
"""

from .connection import Bootstrapper, bootstrap
from .exceptions import (
    BootstrapError,
    EngineError,
    EngineQueryError,
    EngineWriteError,
    StoreConnectionError,
    StoreError,
    StoreWriteError,
)
from .models import BootstrapResult, CollectionDescriptor, MappingSpec, ViewDocument

__all__ = [
    'Bootstrapper',
    'bootstrap',
    'BootstrapResult',
    'CollectionDescriptor',
    'MappingSpec',
    'ViewDocument',
    'BootstrapError',
    'StoreError',
    'StoreConnectionError',
    'StoreWriteError',
    'EngineError',
    'EngineQueryError',
    'EngineWriteError',
]
