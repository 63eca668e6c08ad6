"""Title rewriting and filtering rules applied around reconciliation.

Pre rules run before reconciliation and may only rewrite record titles, which
changes the file names items are expected under. Post rules run after it and
select items to block, optionally scheduling their saved files for deletion.

Rules are declared per channel in YAML (``replace``, ``filter``, ``named``)
and resolved into plain callables when the configuration is loaded. Custom
rules are registered by name::

    @register_rule("strip_hashtags")
    def strip_hashtags(context: TransformContext) -> None:
        for record in context.records:
            record.update_title(re.sub(r"\\s*#\\w+", "", record.title))
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
import logging
import re

from .config import ChannelConfig
from .config.types import (
    FilterAction,
    FilterMatch,
    FilterRuleSpec,
    NamedRuleSpec,
    ReplaceRuleSpec,
    TransformRuleSpec,
)
from .exceptions import TransformRuleError
from .types import ChannelState, VideoRecord

logger = logging.getLogger(__name__)


@dataclass
class TransformContext:
    """Everything a rule may inspect or change for one channel run.

    Attributes:
        channel_key: The channel being processed.
        records: Catalog records in catalog order.
        state: The channel's state; rules block items through it.
        deletions: Records whose saved files should be deleted.
    """

    channel_key: str
    records: list[VideoRecord]
    state: ChannelState
    deletions: list[VideoRecord] = field(default_factory=list[VideoRecord])

    def block(self, record: VideoRecord, delete: bool = False) -> None:
        """Block an item, scheduling its file for deletion if it was saved."""
        was_saved = record.id in self.state.saved
        self.state.mark_blocked(record.id)
        if delete and was_saved:
            self.deletions.append(record)


type TransformRule = Callable[[TransformContext], None]

_RULE_REGISTRY: dict[str, Callable[..., None]] = {}


def register_rule[F: Callable[..., None]](name: str) -> Callable[[F], F]:
    """Register a rule callable under a name usable from ``named`` rules.

    The callable receives the TransformContext followed by the rule's
    ``options`` as keyword arguments.

    Raises:
        ValueError: If the name is already registered.
    """

    def decorator(func: F) -> F:
        if name in _RULE_REGISTRY:
            raise ValueError(f"Transform rule '{name}' is already registered")
        _RULE_REGISTRY[name] = func
        return func

    return decorator


def registered_rules() -> list[str]:
    """Return the names of all registered rules."""
    return sorted(_RULE_REGISTRY)


def _replace_rule(spec: ReplaceRuleSpec, context: TransformContext) -> None:
    flags = re.IGNORECASE if spec.ignore_case else 0
    pattern = spec.pattern if spec.regex else re.escape(spec.pattern)
    replacement = spec.replacement
    if not spec.regex:
        replacement = replacement.replace("\\", "\\\\")
    compiled = re.compile(pattern, flags)
    for record in context.records:
        new_title = compiled.sub(replacement, record.title)
        if new_title != record.title:
            record.update_title(new_title)


def _title_matches(spec: FilterRuleSpec, title: str) -> bool:
    if spec.match is FilterMatch.REGEX:
        flags = re.IGNORECASE if spec.ignore_case else 0
        return any(re.search(value, title, flags) for value in spec.values)

    if spec.ignore_case:
        title = title.casefold()
        values = [value.casefold() for value in spec.values]
    else:
        values = spec.values

    match spec.match:
        case FilterMatch.CONTAINS:
            return any(value in title for value in values)
        case FilterMatch.STARTS_WITH:
            return any(title.startswith(value) for value in values)
        case FilterMatch.ENDS_WITH:
            return any(title.endswith(value) for value in values)
        case FilterMatch.EQUALS:
            return title in values


def _filter_rule(spec: FilterRuleSpec, context: TransformContext) -> None:
    delete = spec.action is FilterAction.DELETE
    for record in context.records:
        if record.id in context.state.blocked:
            continue
        if _title_matches(spec, record.title) != spec.negate:
            logger.info(
                "Item blocked by filter rule.",
                extra={
                    "channel_key": context.channel_key,
                    "item_id": record.id,
                    "title": record.title,
                    "match": spec.match.value,
                    "action": spec.action.value,
                },
            )
            context.block(record, delete=delete)


def build_rule(channel_key: str, spec: TransformRuleSpec) -> TransformRule:
    """Resolve one declared rule into a callable.

    Raises:
        TransformRuleError: If a named rule is not registered.
    """
    match spec:
        case ReplaceRuleSpec():
            return partial(_replace_rule, spec)
        case FilterRuleSpec():
            return partial(_filter_rule, spec)
        case NamedRuleSpec(name=name, options=options):
            func = _RULE_REGISTRY.get(name)
            if func is None:
                raise TransformRuleError(
                    f"Unknown transform rule '{name}'. Registered: {registered_rules()}",
                    channel_key=channel_key,
                    rule_name=name,
                )
            return partial(func, **options)


@dataclass(frozen=True, slots=True)
class ChannelRules:
    """Resolved pre and post rules of one channel, in declaration order."""

    pre: tuple[TransformRule, ...] = ()
    post: tuple[TransformRule, ...] = ()


def resolve_rules(channels: dict[str, ChannelConfig]) -> dict[str, ChannelRules]:
    """Resolve the declared rules of every channel.

    Raises:
        TransformRuleError: If any channel references an unknown rule.
    """
    return {
        key: ChannelRules(
            pre=tuple(build_rule(key, spec) for spec in config.pre_rules),
            post=tuple(build_rule(key, spec) for spec in config.post_rules),
        )
        for key, config in channels.items()
    }


def apply_rules(rules: tuple[TransformRule, ...], context: TransformContext) -> None:
    """Run rules in order against a context.

    Raises:
        TransformRuleError: If a rule raises; the original exception is chained.
    """
    for rule in rules:
        try:
            rule(context)
        except TransformRuleError:
            raise
        except Exception as e:
            raise TransformRuleError(
                "Transform rule failed.",
                channel_key=context.channel_key,
                rule_name=getattr(rule, "func", rule).__name__,
            ) from e


# --- Built-in named rules ---


@register_rule("prepend")
def prepend_title(context: TransformContext, prefix: str) -> None:
    """Prefix every title."""
    for record in context.records:
        record.update_title(prefix + record.title)


@register_rule("append")
def append_title(context: TransformContext, suffix: str) -> None:
    """Suffix every title."""
    for record in context.records:
        record.update_title(record.title + suffix)


@register_rule("append_upload_date")
def append_upload_date(
    context: TransformContext, date_format: str = "%Y-%m-%d"
) -> None:
    """Suffix every title with its publication date, when known."""
    for record in context.records:
        if record.published is not None:
            suffix = record.published.strftime(date_format)
            record.update_title(f"{record.title} - {suffix}")


_TEMPLATE_FIELD = re.compile(r"\$(\w+)")


def _render_template(
    template: str, matched: re.Match[str], index: int, record: VideoRecord
) -> str:
    groups = matched.groupdict()
    published = record.published.strftime("%Y-%m-%d") if record.published else ""

    def substitute(field_match: re.Match[str]) -> str:
        name = field_match.group(1)
        if name == "i":
            return str(index)
        if name == "d":
            return published
        return groups.get(name) or ""

    return _TEMPLATE_FIELD.sub(substitute, template)


@register_rule("pattern")
def pattern_title(
    context: TransformContext, pattern: str, result: str, strict: bool = True
) -> None:
    """Rebuild titles that fully match a pattern from a template.

    The template may reference named groups as ``$name``, the 1-based catalog
    position as ``$i``, and the publication date as ``$d``. With ``strict``,
    a title that does not match raises instead of being left unchanged.
    """
    compiled = re.compile(pattern)
    for index, record in enumerate(context.records, start=1):
        matched = compiled.fullmatch(record.title)
        if matched is None:
            if strict:
                raise ValueError(
                    f"Title {record.title!r} of item {record.id} does not match {pattern!r}"
                )
            continue

        record.update_title(_render_template(result, matched, index, record))
