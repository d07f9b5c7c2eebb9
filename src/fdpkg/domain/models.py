import json
from typing import List

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from packaging.version import InvalidVersion, Version

from .errors import ParseError

# matches any recorded version in ledger lookups
ANY_VERSION = "_any"


class PackageInfo(BaseModel):
    """registry record for one version of a package."""
    model_config = ConfigDict(frozen=True, strict=True)

    id: str
    name: str
    description: str
    version: str
    dependencies: List[str]
    files: List[str]
    platform: str

    @classmethod
    def from_json(cls, raw) -> "PackageInfo":
        """
        build from a registry response body.

        validation happens before the instance exists, so a bad document never
        yields a partially populated record.

        raises:
            ParseError: if the body is not json or any field is missing or mistyped
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise ParseError(f"Invalid package metadata: {_describe(e)}") from e


class PackageRecord(BaseModel):
    """an entry of the installed-package ledger."""
    name: str
    version: str
    files: List[str]

    def matches(self, name: str, version: str = ANY_VERSION) -> bool:
        if self.name != name:
            return False
        return version == ANY_VERSION or self.version == version

    @property
    def sort_key(self):
        try:
            return (self.name, 0, Version(self.version), "")
        except InvalidVersion:
            return (self.name, 1, None, self.version)


_records_adapter = TypeAdapter(List[PackageRecord])


def parse_records(raw) -> List[PackageRecord]:
    """parse a serialized ledger (json array of records)."""
    try:
        return _records_adapter.validate_json(raw)
    except ValidationError as e:
        raise ParseError(_describe(e)) from e


def dump_records(records: List[PackageRecord]) -> str:
    """
    serialize records in the on-disk ledger layout.

    keys sorted, 4-space indent, no ascii escaping and no trailing newline, so
    existing ledgers round-trip byte for byte.
    """
    data = [record.model_dump() for record in records]
    return json.dumps(data, indent=4, sort_keys=True, ensure_ascii=False)


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    if location:
        return f"{location}: {first['msg']}"
    return first["msg"]
