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

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CouchbaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COUCHBASE_", env_file=".env", extra="ignore")

    host: str = "127.0.0.1"
    user: str = "Administrator"
    password: str = "password"

    # The bucket's own identity; the design document is stored under this name
    bucket_name: str = "default"
    bucket_password: str = ""

    # Views REST API
    view_scheme: Literal["http", "https"] = "http"
    view_port: int = 8092

    # Seconds
    timeout: float = 30.0

    @property
    def connection_string(self) -> str:
        if "://" in self.host:
            return self.host
        return f"couchbase://{self.host}"

    @property
    def view_host(self) -> str:
        host = self.host.split("://", 1)[-1]
        return host.split(",", 1)[0].split(":", 1)[0]


class ElasticsearchSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ELASTICSEARCH_", env_file=".env", extra="ignore")

    host: str = "http://localhost:9200"
    log: str = "WARNING"
    index: str = "couchsearch"

    @field_validator("log")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()


class BootstrapSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COUCHSEARCH_", env_file=".env", extra="ignore")

    couchbase: CouchbaseSettings = Field(default_factory=CouchbaseSettings)
    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)

    # Seconds to wait after issuing mapping writes on a freshly created index
    settle_interval: float = Field(default=5.0, ge=0)
    settle_strategy: Literal["fixed", "poll"] = "fixed"
    settle_poll_interval: float = Field(default=0.5, gt=0)

    # Token stripped from collection names to get the record type
    type_suffix: str = "model"


@lru_cache
def get_settings(env_file: Optional[str] = None) -> BootstrapSettings:
    if env_file:
        return BootstrapSettings(
            _env_file=env_file,
            couchbase=CouchbaseSettings(_env_file=env_file),
            elasticsearch=ElasticsearchSettings(_env_file=env_file),
        )
    return BootstrapSettings()


settings = get_settings()
