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
Pure derivation of schema artifacts from a collection set.

Nothing here touches the network: the orchestrator derives the view document
and the mapping specs up front, then hands them to the installer and the
reconciler.
"""

import copy
import json
from collections.abc import Mapping
from typing import Any, Iterable, List, Union

from couchsearch.models import (
    DISCRIMINATOR_FIELD,
    CollectionDescriptor,
    MappingSpec,
    ViewDefinition,
    ViewDocument,
    ViewOptions,
)

TYPE_SUFFIX = "model"

CollectionsInput = Union[Mapping, Iterable[CollectionDescriptor]]


def derive_type_name(name: str, suffix: str = TYPE_SUFFIX) -> str:
    """Strip the first occurrence of ``suffix`` from a collection name ("widgetmodel" -> "widget")"""
    if not suffix:
        return name
    return name.replace(suffix, "", 1)


def build_map_function(type_name: str) -> str:
    """Map function emitting every document whose discriminator equals ``type_name``"""
    literal = json.dumps(type_name)
    return (
        "function (doc, meta) {"
        f"if (doc.{DISCRIMINATOR_FIELD} && doc.{DISCRIMINATOR_FIELD} == {literal}) {{"
        "emit(meta.id, doc);"
        "}"
        "}"
    )


def derive_view_document(names: Iterable[str], suffix: str = TYPE_SUFFIX) -> ViewDocument:
    """Build the combined view document, one view per collection name"""
    views = {}
    for name in names:
        type_name = derive_type_name(name, suffix)
        views[type_name] = ViewDefinition(map=build_map_function(type_name))
    return ViewDocument(views=views, options=ViewOptions())


def derive_mapping_specs(
    descriptors: Iterable[CollectionDescriptor], index: str, suffix: str = TYPE_SUFFIX
) -> List[MappingSpec]:
    """
    Build one mapping spec per collection that declares a structured schema.

    Collections whose schema is missing, a scalar or a sequence are skipped.
    The schema is deep-copied so later changes to the caller's object do not
    leak into the mapping spec.
    """
    specs = []
    for descriptor in descriptors:
        if not isinstance(descriptor.schema, Mapping):
            continue
        specs.append(
            MappingSpec(
                index=index,
                type=derive_type_name(descriptor.name, suffix),
                properties=copy.deepcopy(dict(descriptor.schema)),
            )
        )
    return specs


def _to_descriptor(name: str, value: Any) -> CollectionDescriptor:
    if isinstance(value, CollectionDescriptor):
        if value.name != name:
            raise ValueError(f"Collection key '{name}' does not match descriptor name '{value.name}'")
        return value
    if value is None:
        return CollectionDescriptor(name=name)
    if isinstance(value, Mapping):
        schema = value.get("schema", value.get("mapping"))
        return CollectionDescriptor(name=name, schema=schema)
    # Objects exposing the schema as an attribute, e.g. application model classes
    schema = getattr(value, "schema", None)
    if schema is None:
        schema = getattr(value, "mapping", None)
    return CollectionDescriptor(name=name, schema=schema)


def normalize_collections(collections: CollectionsInput, suffix: str = TYPE_SUFFIX) -> List[CollectionDescriptor]:
    """
    Turn the caller's collection set into an ordered list of descriptors.

    Accepts a mapping of name -> descriptor (a ``CollectionDescriptor``, a dict
    holding the schema under ``schema`` or ``mapping``, or any object with such
    an attribute) or an iterable of ``CollectionDescriptor``.

    Raises:
        ValueError: on duplicate names, or two names deriving the same type
    """
    if isinstance(collections, Mapping):
        descriptors = [_to_descriptor(name, value) for name, value in collections.items()]
    else:
        descriptors = list(collections)
        for descriptor in descriptors:
            if not isinstance(descriptor, CollectionDescriptor):
                raise ValueError(f"Expected CollectionDescriptor, got {type(descriptor).__name__}")

    seen_names = set()
    seen_types = {}
    for descriptor in descriptors:
        if descriptor.name in seen_names:
            raise ValueError(f"Duplicate collection name: {descriptor.name}")
        seen_names.add(descriptor.name)

        type_name = derive_type_name(descriptor.name, suffix)
        if type_name in seen_types:
            raise ValueError(
                f"Collections '{seen_types[type_name]}' and '{descriptor.name}' both map to type '{type_name}'"
            )
        seen_types[type_name] = descriptor.name

    return descriptors
