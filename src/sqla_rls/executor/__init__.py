"""Orchestration of reads and writes over an async engine."""

from sqla_rls.executor._executor import PlanProvider, QueryExecutor, postgres_plan

__all__ = ["PlanProvider", "QueryExecutor", "postgres_plan"]
