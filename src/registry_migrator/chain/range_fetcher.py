"""
Adaptive retrieval of contract logs over large block ranges.

RPC backends time out or reject oversized `eth_getLogs` ranges, and the safe range
size varies along the chain. The fetcher walks `[from_block, to_block)` with a
dynamic step: it divides the step on failure and multiplies it on success.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from registry_migrator.chain.abi import NEW_REPO_EVENT_TOPIC, decode_new_repo
from registry_migrator.chain.interfaces import LogSource
from registry_migrator.chain.models import RawLog, RegistryEvent
from registry_migrator.config.models import RangeFetchSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_log(log: RawLog) -> RawLog:
    if log.block_number is None:
        raise ValueError(f"Log from {log.address} has no blockNumber")
    if not log.transaction_hash:
        raise ValueError(f"Log from {log.address} at block {log.block_number} has no txHash")
    return log


def _log_sort_key(log: RawLog) -> tuple[int, int]:
    return (log.block_number or 0, log.log_index if log.log_index is not None else -1)


async def fetch_events(
    log_source: LogSource,
    address: str,
    topics: Sequence[str],
    from_block: int,
    to_block: int,
    *,
    settings: RangeFetchSettings = RangeFetchSettings(),
    enrich: Optional[Callable[[list[RawLog]], Awaitable[list[T]]]] = None,
) -> list:
    """
    Return every log matching (address, topics) in the half-open range [from_block, to_block).

    Each fetched sub-range is validated, sorted by (block, log index) and passed to
    `enrich` when given. A failure at the minimum step size propagates; enrichment
    failures propagate immediately.
    """
    max_step = settings.max_blocks_per_request
    min_step = settings.min_blocks_per_request

    results: list = []
    cursor = from_block
    step = max_step

    while cursor < to_block:
        end = min(cursor + step, to_block)
        try:
            logs = await log_source.get_logs(address, cursor, end - 1, topics)
        except Exception as e:
            if step <= min_step:
                logger.error(
                    "Log fetch failed at the minimum step. address=%s range=[%s,%s) step=%s",
                    address,
                    cursor,
                    end,
                    step,
                )
                raise RuntimeError(f"Error retrieving logs from {address} [{cursor},{end}): {e}") from e
            step = max(step // settings.step_decrease_factor, min_step)
            logger.warning(
                "Log fetch failed, decreasing step. address=%s range=[%s,%s) next_step=%s error=%s",
                address,
                cursor,
                end,
                step,
                e,
            )
            continue

        step = min(step * settings.step_increase_factor, max_step)

        range_logs = sorted((_validate_log(log) for log in logs), key=_log_sort_key)
        logger.info("Fetched logs. address=%s range=[%s,%s) count=%d", address, cursor, end, len(range_logs))

        if enrich is not None:
            results.extend(await enrich(range_logs))
        else:
            results.extend(range_logs)
        cursor = end

    return results


async def get_registry_on_range(
    log_source: LogSource,
    registry_name: str,
    from_block: int,
    to_block: int,
    *,
    settings: RangeFetchSettings = RangeFetchSettings(),
) -> list[RegistryEvent]:
    """Collect the NewRepo events of an APM registry, each with its block timestamp."""
    registry_address = await log_source.resolve_name(registry_name)
    if not registry_address:
        raise ValueError(f"Registry ENS {registry_name} does not exist")

    async def _to_registry_events(logs: list[RawLog]) -> list[RegistryEvent]:
        block_numbers = sorted({log.block_number for log in logs if log.block_number is not None})
        blocks = await asyncio.gather(*(log_source.get_block(number) for number in block_numbers))
        timestamps = {number: block.timestamp for number, block in zip(block_numbers, blocks)}

        events: list[RegistryEvent] = []
        for log in logs:
            name, repo = decode_new_repo(log)
            events.append(
                RegistryEvent(
                    package_name=name,
                    repo_address=repo,
                    transaction_hash=log.transaction_hash or "",
                    deploy_timestamp_sec=timestamps[log.block_number],
                    fully_qualified_name=f"{name}.{registry_name}",
                )
            )
        return events

    events = await fetch_events(
        log_source,
        registry_address,
        [NEW_REPO_EVENT_TOPIC],
        from_block,
        to_block,
        settings=settings,
        enrich=_to_registry_events,
    )
    logger.info("Fetched registry events. registry=%s count=%d", registry_name, len(events))
    return events
