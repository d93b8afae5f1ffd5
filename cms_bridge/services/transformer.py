"""
Content transformation between the CMS and platform formats.

A transformer is driven by a declarative TransformMapping: ordered
(source path, target path) pairs per direction, a status lookup table per
direction, the fields that hold dates or HTML, and the fields that must be
present after mapping. Platform quirks that cannot be expressed as a table
live in subclasses (see WordPressTransformer).
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from cms_bridge.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

FieldPairs = list[tuple[str, str]]
CustomTransformer = Callable[[dict, dict], Optional[dict]]

DATE_FORMATS = ("iso", "unix", "mysql")


def get_nested_value(obj: Any, path: str) -> Any:
    """Read a dot-path (`"a.b.c"`); any missing step yields None."""
    if not path or obj is None:
        return None

    current = obj
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def set_nested_value(obj: dict, path: str, value: Any) -> None:
    """Write a dot-path, creating intermediate dicts as needed."""
    if not path:
        return

    *parents, last_key = path.split(".")
    target = obj
    for key in parents:
        if not isinstance(target.get(key), dict):
            target[key] = {}
        target = target[key]
    target[last_key] = value


def parse_date(value: Any) -> Optional[datetime]:
    """Parse ISO strings, MySQL datetimes, unix seconds or datetimes; None if invalid."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


_ISO_UTC_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?Z$")


def is_iso_utc(value: Any) -> bool:
    """True for an ISO 8601 string already in UTC (`...Z`), with or without fractions."""
    if not isinstance(value, str) or not _ISO_UTC_RE.match(value):
        return False
    return parse_date(value) is not None


def to_iso_string(moment: datetime) -> str:
    """Format as UTC ISO 8601 with millisecond precision (`2024-01-15T10:30:00.000Z`)."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_IFRAME_RE = re.compile(r"<iframe[^>]*>.*?</iframe>", re.IGNORECASE | re.DOTALL)
_EVENT_HANDLER_RE = re.compile(r"""\son\w+\s*=\s*("[^"]*"|'[^']*')""", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def sanitize_html(html: Optional[str]) -> str:
    """Strip script and iframe blocks and inline event handlers."""
    if not html:
        return ""
    html = _SCRIPT_RE.sub("", html)
    html = _IFRAME_RE.sub("", html)
    return _EVENT_HANDLER_RE.sub("", html)


def generate_excerpt(content: Optional[str], max_length: int = 150) -> str:
    """Plain-text excerpt cut at the last word boundary within max_length."""
    if not content:
        return ""

    text_only = " ".join(_TAG_RE.sub(" ", content).split())
    if len(text_only) <= max_length:
        return text_only

    truncated = text_only[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        return truncated[:last_space] + "..."
    return truncated + "..."


def flatten_taxonomies(taxonomies: Any, extract_field: Optional[str] = None) -> list:
    """Normalize a taxonomy list, optionally pulling one field out of dict terms."""
    if not isinstance(taxonomies, list):
        return []

    flattened = []
    for term in taxonomies:
        if isinstance(term, dict) and extract_field:
            term = term.get(extract_field)
        if term is not None:
            flattened.append(term)
    return flattened


@dataclass
class TransformMapping:
    """Declarative field correspondence between the CMS and one platform."""

    name: str
    forward_direction: str
    backward_direction: str
    forward_fields: FieldPairs
    backward_fields: FieldPairs
    forward_status: dict = field(default_factory=dict)
    backward_status: dict = field(default_factory=dict)
    forward_default_status: Any = "draft"
    backward_default_status: Any = "draft"
    # (CMS status path, platform status path)
    status_paths: tuple[str, str] = ("status", "status")
    forward_date_fields: list[str] = field(default_factory=list)
    backward_date_fields: list[str] = field(default_factory=list)
    forward_html_fields: list[str] = field(default_factory=list)
    forward_required: list[str] = field(default_factory=lambda: ["title"])
    backward_required: list[str] = field(default_factory=lambda: ["title"])

    @property
    def directions(self) -> tuple[str, str]:
        return (self.forward_direction, self.backward_direction)

    def is_forward(self, direction: str) -> bool:
        if direction == self.forward_direction:
            return True
        if direction == self.backward_direction:
            return False
        raise ValueError(
            f"Unknown direction '{direction}' for mapping '{self.name}', "
            f"expected one of {self.directions}"
        )

    def fields(self, direction: str) -> FieldPairs:
        return self.forward_fields if self.is_forward(direction) else self.backward_fields

    def status_table(self, direction: str) -> dict:
        return self.forward_status if self.is_forward(direction) else self.backward_status

    def default_status(self, direction: str) -> Any:
        if self.is_forward(direction):
            return self.forward_default_status
        return self.backward_default_status

    def status_source_and_target(self, direction: str) -> tuple[str, str]:
        cms_path, platform_path = self.status_paths
        if self.is_forward(direction):
            return cms_path, platform_path
        return platform_path, cms_path

    def date_fields(self, direction: str) -> list[str]:
        return self.forward_date_fields if self.is_forward(direction) else self.backward_date_fields

    def required(self, direction: str) -> list[str]:
        return self.forward_required if self.is_forward(direction) else self.backward_required

    def add_field(self, direction: str, source_path: str, target_path: str) -> None:
        self.fields(direction).append((source_path, target_path))


class ContentTransformer:
    """Maps content between the CMS and a platform using a TransformMapping."""

    def __init__(
        self,
        mapping: TransformMapping,
        custom_transformers: Optional[dict[str, list[CustomTransformer]]] = None,
        date_format: str = "iso",
        html_sanitizer: Optional[Callable[[str, str], str]] = None,
    ):
        if date_format not in DATE_FORMATS:
            raise ValueError(f"date_format must be one of {DATE_FORMATS}, got '{date_format}'")

        self.mapping = mapping
        self.custom_transformers = custom_transformers or {}
        self.date_format = date_format
        self.html_sanitizer = html_sanitizer

    @property
    def platform(self) -> str:
        return self.mapping.name

    def forward(self, source_doc: dict) -> dict:
        """CMS content -> platform content."""
        return self.transform(source_doc, self.mapping.forward_direction)

    def backward(self, target_doc: dict) -> dict:
        """Platform content -> CMS content."""
        return self.transform(target_doc, self.mapping.backward_direction)

    def transform(self, document: dict, direction: str) -> dict:
        is_forward = self.mapping.is_forward(direction)

        result = self.apply_field_mapping(document, self.mapping.fields(direction))

        status_source, status_target = self.mapping.status_source_and_target(direction)
        set_nested_value(
            result,
            status_target,
            self.transform_status(get_nested_value(document, status_source), direction),
        )

        if is_forward:
            result = self.format_forward(result, document)
        else:
            result = self.format_backward(result, document)

        result = self.apply_custom_transformers(result, document, direction)
        self.validate(result, direction)
        return result

    def apply_field_mapping(self, source: dict, pairs: FieldPairs) -> dict:
        """
        Copy every mapped, non-null source value to its target path.

        When several pairs write the same target the first one found wins.
        Unmapped source fields are dropped.
        """
        result: dict = {}
        written: set[str] = set()

        for source_path, target_path in pairs:
            if target_path in written:
                continue
            value = get_nested_value(source, source_path)
            if value is None:
                continue
            set_nested_value(result, target_path, value)
            written.add(target_path)

        return result

    def transform_status(self, status: Any, direction: str) -> Any:
        """Translate a status for a direction; unknown values fall back to the default."""
        table = self.mapping.status_table(direction)
        try:
            if status in table:
                return table[status]
        except TypeError:
            pass

        default = self.mapping.default_status(direction)
        if status is not None:
            logger.debug(
                f"Unmapped status {status!r} for {direction}, using default {default!r}"
            )
        return default

    def format_forward(self, target: dict, source: dict) -> dict:
        """Platform-bound formatting: ISO dates and sanitized HTML."""
        for path in self.mapping.forward_date_fields:
            value = get_nested_value(target, path)
            if value is not None:
                set_nested_value(target, path, self.format_date_for_platform(value))

        for path in self.mapping.forward_html_fields:
            value = get_nested_value(target, path)
            if isinstance(value, str):
                set_nested_value(target, path, self.sanitize(value))

        return target

    def format_backward(self, target: dict, source: dict) -> dict:
        """CMS-bound formatting: dates in the configured date format."""
        for path in self.mapping.backward_date_fields:
            value = get_nested_value(target, path)
            if value is not None:
                set_nested_value(target, path, self.format_date_for_cms(value))
        return target

    def format_date_for_platform(self, value: Any) -> str:
        if is_iso_utc(value):
            return value
        parsed = parse_date(value)
        return to_iso_string(parsed) if parsed else ""

    def format_date_for_cms(self, value: Any) -> Any:
        if self.date_format == "iso" and is_iso_utc(value):
            return value
        parsed = parse_date(value)
        if parsed is None:
            return ""
        if self.date_format == "unix":
            return int(parsed.timestamp())
        if self.date_format == "mysql":
            return parsed.strftime("%Y-%m-%d %H:%M:%S")
        return to_iso_string(parsed)

    def sanitize(self, html: str) -> str:
        if self.html_sanitizer:
            return self.html_sanitizer(html, self.platform)
        return sanitize_html(html)

    def apply_custom_transformers(self, target: dict, source: dict, direction: str) -> dict:
        result = dict(target)
        for transformer in self.custom_transformers.get(direction, []):
            result = transformer(result, source) or result
        return result

    def validate(self, content: dict, direction: str) -> None:
        """Raise ValidationError listing every required field that is empty."""
        missing = []
        for path in self.mapping.required(direction):
            value = get_nested_value(content, path)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(path)

        if missing:
            raise ValidationError(direction, missing)

    def add_field_mapping(self, direction: str, source_path: str, target_path: str) -> None:
        self.mapping.add_field(direction, source_path, target_path)

    def add_custom_transformer(self, direction: str, transformer: CustomTransformer) -> None:
        self.mapping.is_forward(direction)
        self.custom_transformers.setdefault(direction, []).append(transformer)

    def batch_transform(self, items: list[dict], direction: str) -> dict:
        """Transform many items, collecting failures instead of stopping at the first."""
        results = []
        errors = []

        for index, item in enumerate(items):
            try:
                results.append(self.transform(item, direction))
            except ValidationError as e:
                errors.append({"index": index, "item": item, "error": e.message})

        return {"success": results, "errors": errors}


class WordPressTransformer(ContentTransformer):
    """
    WordPress posts: meta fields, generated excerpts and taxonomy ids.

    WordPress stores only term ids, so `taxonomies` are reduced to ids on the
    way out rather than through the field table; term names do not come back.
    """

    def format_forward(self, target: dict, source: dict) -> dict:
        target = super().format_forward(target, source)

        if not isinstance(target.get("meta"), dict):
            target["meta"] = {}
        meta = target["meta"]

        if not target.get("excerpt") and target.get("content"):
            target["excerpt"] = generate_excerpt(target["content"], 150)

        taxonomies = source.get("taxonomies")
        if isinstance(taxonomies, dict):
            if "categories" in taxonomies:
                target["categories"] = flatten_taxonomies(taxonomies["categories"], "id")
            if "tags" in taxonomies:
                target["tags"] = flatten_taxonomies(taxonomies["tags"], "id")

        metadata = source.get("metadata")
        if isinstance(metadata, dict):
            for key, value in metadata.items():
                if key.startswith("custom_"):
                    meta[key[len("custom_"):]] = value
                elif key not in meta:
                    meta[key] = value

        return target

    def format_backward(self, target: dict, source: dict) -> dict:
        target = super().format_backward(target, source)

        if not target.get("id") and source.get("id"):
            target["id"] = f"wp_{source['id']}"

        taxonomies = target.get("taxonomies")
        if isinstance(taxonomies, dict):
            for key in ("categories", "tags"):
                if key in taxonomies:
                    taxonomies[key] = flatten_taxonomies(taxonomies[key])

        meta = source.get("meta")
        if isinstance(meta, dict):
            mapped_sources = {source_path for source_path, _ in self.mapping.backward_fields}
            metadata = target.get("metadata") if isinstance(target.get("metadata"), dict) else {}
            for key, value in meta.items():
                # Private meta is either mapped explicitly or not ours
                if key.startswith("_") or f"meta.{key}" in mapped_sources:
                    continue
                metadata.setdefault(key, value)
            if metadata:
                target["metadata"] = metadata

        return target
