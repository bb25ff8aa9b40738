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


class CouchsearchError(Exception):
    """Base class for every error raised by couchsearch"""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class StoreError(CouchsearchError):
    """Document store side of the bootstrap failed"""


class StoreConnectionError(StoreError):
    """Cannot open or authenticate to the document store"""


class StoreWriteError(StoreError):
    """The view document upsert was rejected"""


class EngineError(CouchsearchError):
    """Search engine side of the bootstrap failed"""


class EngineQueryError(EngineError):
    """Cannot determine index existence or current mappings"""


class EngineWriteError(EngineError):
    """Index creation or a mapping write failed"""


class BootstrapError(CouchsearchError):
    """
    Aggregated bootstrap failure.

    ``phase`` is ``"store"`` when the view install failed and ``"engine"`` when
    the search index could not be checked or created. No handles are usable
    after this error, even if one side had already succeeded.
    """

    STORE = "store"
    ENGINE = "engine"

    def __init__(self, phase: str, cause: Exception):
        super().__init__(f"Bootstrap failed during {phase} phase: {cause}", cause)
        self.phase = phase


def describe_error(e: Exception) -> str:
    """Render an exception together with its chained cause, for log lines"""
    cause = getattr(e, "cause", None) or e.__cause__
    if cause is None or cause is e:
        return f"{type(e).__name__}: {e}"
    return f"{type(e).__name__}: {e} (caused by {type(cause).__name__}: {cause})"
