"""The contract as a runtime model: documents, operations and their variants."""

from specguard.definition.document import Document
from specguard.definition.operation import Operation
from specguard.definition.parameters import Parameter, ParameterCollection
from specguard.definition.request import RequestVariant
from specguard.definition.response import ResponseVariant

__all__ = [
    "Document",
    "Operation",
    "Parameter",
    "ParameterCollection",
    "RequestVariant",
    "ResponseVariant",
]
