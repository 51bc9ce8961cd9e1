"""Layered configuration for sqla-rls."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqla_rls._types import OnWriteDenied

__all__ = [
    "RlsConfig",
    "configure",
    "get_global_config",
    "_reset_global_config",
    "_set_global_config",
]

_VALID_WRITE_DENIED: set[str] = {"raise", "filter"}


@dataclass(frozen=True, slots=True)
class RlsConfig:
    """Layered configuration with merge semantics (global -> executor -> call).

    Attributes:
        default_limit: Page size used when the IR carries no usable ``limit``.
        enforce_rls: Run the authorization gate when a user context is given.
        log_policy_decisions: Emit audit records for rule and table decisions.
        on_write_denied: ``"raise"`` rejects a whole write batch when any
            record is disallowed; ``"filter"`` drops disallowed records
            before the write is issued.
        cache_key_prefix: Prefix for cache entry keys.
        cache_tag_prefix: Prefix for tag index keys.
        large_table_threshold: Plan row estimate above which an unfiltered
            query triggers a suggestion.
        sort_memory_threshold: Sort space above which an external-merge
            sort triggers a suggestion.
        max_join_count: Join nodes tolerated under a nested loop.
        check_valid_table: Reject tables missing from ``valid_tables``.
        valid_tables: Table allow-list used with ``check_valid_table``.

    Example::

        config = RlsConfig(default_limit=25)
        merged = config.merge(on_write_denied="filter")
    """

    default_limit: int = 10
    enforce_rls: bool = True
    log_policy_decisions: bool = False
    on_write_denied: OnWriteDenied = "raise"
    cache_key_prefix: str = "query:"
    cache_tag_prefix: str = "tag:"
    large_table_threshold: int = 100_000
    sort_memory_threshold: int = 1_000_000
    max_join_count: int = 3
    check_valid_table: bool = False
    valid_tables: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.on_write_denied not in _VALID_WRITE_DENIED:
            raise ValueError(
                f"on_write_denied must be one of {_VALID_WRITE_DENIED!r}, "
                f"got {self.on_write_denied!r}"
            )
        if self.default_limit <= 0:
            raise ValueError(f"default_limit must be positive, got {self.default_limit!r}")
        if self.max_join_count < 0:
            raise ValueError(f"max_join_count must not be negative, got {self.max_join_count!r}")
        if not isinstance(self.valid_tables, tuple):
            # Use object.__setattr__ because the dataclass is frozen
            object.__setattr__(self, "valid_tables", tuple(self.valid_tables))

    def merge(
        self,
        *,
        default_limit: int | None = None,
        enforce_rls: bool | None = None,
        log_policy_decisions: bool | None = None,
        on_write_denied: OnWriteDenied | None = None,
        cache_key_prefix: str | None = None,
        cache_tag_prefix: str | None = None,
        large_table_threshold: int | None = None,
        sort_memory_threshold: int | None = None,
        max_join_count: int | None = None,
        check_valid_table: bool | None = None,
        valid_tables: Iterable[str] | None = None,
    ) -> RlsConfig:
        """Return a new config with non-None overrides applied.

        Returns:
            A new ``RlsConfig`` with overrides merged.

        Example::

            base = RlsConfig()
            executor_cfg = base.merge(enforce_rls=False)
        """
        return RlsConfig(
            default_limit=default_limit if default_limit is not None else self.default_limit,
            enforce_rls=enforce_rls if enforce_rls is not None else self.enforce_rls,
            log_policy_decisions=(
                log_policy_decisions
                if log_policy_decisions is not None
                else self.log_policy_decisions
            ),
            on_write_denied=(
                on_write_denied if on_write_denied is not None else self.on_write_denied
            ),
            cache_key_prefix=(
                cache_key_prefix if cache_key_prefix is not None else self.cache_key_prefix
            ),
            cache_tag_prefix=(
                cache_tag_prefix if cache_tag_prefix is not None else self.cache_tag_prefix
            ),
            large_table_threshold=(
                large_table_threshold
                if large_table_threshold is not None
                else self.large_table_threshold
            ),
            sort_memory_threshold=(
                sort_memory_threshold
                if sort_memory_threshold is not None
                else self.sort_memory_threshold
            ),
            max_join_count=max_join_count if max_join_count is not None else self.max_join_count,
            check_valid_table=(
                check_valid_table if check_valid_table is not None else self.check_valid_table
            ),
            valid_tables=(
                tuple(valid_tables) if valid_tables is not None else self.valid_tables
            ),
        )


# ---------------------------------------------------------------------------
# Global configuration singleton
# ---------------------------------------------------------------------------

_global_config = RlsConfig()


def get_global_config() -> RlsConfig:
    """Return the current global configuration."""
    return _global_config


def configure(
    *,
    default_limit: int | None = None,
    enforce_rls: bool | None = None,
    log_policy_decisions: bool | None = None,
    on_write_denied: OnWriteDenied | None = None,
    cache_key_prefix: str | None = None,
    cache_tag_prefix: str | None = None,
    large_table_threshold: int | None = None,
    sort_memory_threshold: int | None = None,
    max_join_count: int | None = None,
    check_valid_table: bool | None = None,
    valid_tables: Iterable[str] | None = None,
) -> RlsConfig:
    """Update the global configuration by merging overrides.

    Only non-None values are applied. Returns the new global config.

    Example::

        configure(log_policy_decisions=True)
    """
    global _global_config
    _global_config = _global_config.merge(
        default_limit=default_limit,
        enforce_rls=enforce_rls,
        log_policy_decisions=log_policy_decisions,
        on_write_denied=on_write_denied,
        cache_key_prefix=cache_key_prefix,
        cache_tag_prefix=cache_tag_prefix,
        large_table_threshold=large_table_threshold,
        sort_memory_threshold=sort_memory_threshold,
        max_join_count=max_join_count,
        check_valid_table=check_valid_table,
        valid_tables=valid_tables,
    )
    return _global_config


def _set_global_config(cfg: RlsConfig) -> None:
    """Replace global config with an exact snapshot. For testing only."""
    global _global_config
    _global_config = cfg


def _reset_global_config() -> None:
    """Reset global config to defaults. For testing only."""
    global _global_config
    _global_config = RlsConfig()
