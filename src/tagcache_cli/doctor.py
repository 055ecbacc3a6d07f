"""Checks run by ``tagcache doctor`` against a live store.

Environment checks run first and stop the run at the first failure. The
functional checks then write under scratch keys and tags that share one
random namespace, so they never touch application data. Everything written
is removed afterwards and a final check confirms nothing was left behind.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from tagcache_core.constants import MAX_EXPIRY, TAG_FIELD_VALUE
from tagcache_core.models.results import WriteStatus
from tagcache_infra.redis.keys import decode
from tagcache_ops.store import RedisTagStore
from tagcache_ops.tagged_cache import AnyTaggedCache

logger = structlog.get_logger()

MIN_SERVER_VERSION = (8, 0)
SCRATCH_TTL = 60


@dataclass(frozen=True)
class CheckResult:
    """One line of the doctor report."""

    name: str
    passed: bool
    detail: str = ""


def parse_version(raw: str) -> tuple[int, ...]:
    """'8.0.2' -> (8, 0, 2); '7.4.0-rc1' -> (7, 4, 0)."""
    parts = []
    for piece in raw.split("."):
        match = re.match(r"\d+", piece)
        if match is None:
            break
        parts.append(int(match.group()))
    return tuple(parts)


class Doctor:
    """Runs every check once against ``store`` and collects the results."""

    def __init__(self, store: RedisTagStore, redis_url: str) -> None:
        self._store = store
        self._redis_url = redis_url
        self._scratch = f"_doctor:{uuid.uuid4().hex[:12]}:"
        self._keys: set[str] = set()
        self._tags: set[str] = set()
        self._results: list[CheckResult] = []

    @property
    def scratch(self) -> str:
        """Namespace every scratch key and tag starts with."""
        return self._scratch

    async def run(self) -> list[CheckResult]:
        """Environment checks, then functional checks, cleanup and its verification."""
        if not await self._environment():
            return self._results
        try:
            for name, check in self._functional_checks():
                try:
                    await check()
                except Exception as exc:  # noqa: BLE001
                    logger.exception("doctor_check_failed", check=name)
                    self._record(name, False, f"{type(exc).__name__}: {exc}")
        finally:
            await self._cleanup()
        await self._verify_cleanup()
        return self._results

    # --- helpers -----------------------------------------------------------

    def _record(self, name: str, passed: bool, detail: str = "") -> bool:
        self._results.append(CheckResult(name, passed, detail))
        return passed

    def _key(self, name: str) -> str:
        key = f"{self._scratch}{name}"
        self._keys.add(key)
        return key

    def _cache(self, *names: str) -> AnyTaggedCache:
        tags = [f"{self._scratch}{name}" for name in names]
        self._tags.update(tags)
        return self._store.tags(tags)

    async def _tagged_keys(self, tag: str) -> set[str]:
        ops = self._store.any_tag_ops
        return {key async for key in ops.get_tagged_keys.execute(f"{self._scratch}{tag}")}

    # --- environment -------------------------------------------------------

    async def _environment(self) -> bool:
        client = self._store.context.client
        try:
            await client.ping()
        except Exception as exc:  # noqa: BLE001
            return self._record("ping", False, str(exc))
        self._record("ping", True, self._redis_url)

        info = await client.info("server")
        server_version = str(info.get("redis_version", "0"))
        supported = parse_version(server_version) >= MIN_SERVER_VERSION
        if not self._record(
            "server version", supported, f"{server_version} (needs >= 8.0 for HSETEX)"
        ):
            return False

        scratch_hash = self._store.context.keys.tag_hash(f"{self._scratch}hexpire")
        async with self._store.context.connection() as conn:
            try:
                await conn.hset(scratch_hash, "field", TAG_FIELD_VALUE)
                reply = list(await conn.hexpire(scratch_hash, SCRATCH_TTL, "field"))
            except Exception as exc:  # noqa: BLE001
                return self._record("field expiry", False, f"HEXPIRE failed: {exc}")
            finally:
                await conn.delete(scratch_hash)
        if not self._record("field expiry", reply == [1], f"HEXPIRE replied {reply!r}"):
            return False

        return self._record("topology", True, self._store.mode.value)

    # --- functional --------------------------------------------------------

    def _functional_checks(self) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        return [
            ("tagged put", self._check_tagged_put),
            ("tag structures", self._check_tag_structures),
            ("tagged remember", self._check_remember),
            ("multiple tags", self._check_multiple_tags),
            ("shared tag flush", self._check_shared_tag_flush),
            ("increment/decrement", self._check_counters),
            ("add", self._check_add),
            ("forever", self._check_forever),
            ("put many", self._check_put_many),
            ("prune", self._check_prune),
        ]

    async def _check_tagged_put(self) -> None:
        key = self._key("put")
        await self._cache("put").put(key, "ok", SCRATCH_TTL)
        stored = await self._store.get(key)
        listed = await self._tagged_keys("put")
        self._record(
            "tagged put",
            stored == "ok" and listed == {key},
            f"value={stored!r} keys={sorted(listed)!r}",
        )

    async def _check_tag_structures(self) -> None:
        key = self._key("structures")
        await self._cache("alpha", "beta").put(key, 1, SCRATCH_TTL)

        keys = self._store.context.keys
        async with self._store.context.connection() as conn:
            members = {decode(m) for m in await conn.smembers(keys.reverse_index(key))}
            fields = await conn.hgetall(keys.tag_hash(f"{self._scratch}alpha"))
            field_ttl = await conn.httl(keys.tag_hash(f"{self._scratch}alpha"), key)
            score = await conn.zscore(keys.registry, f"{self._scratch}alpha")

        expected = {f"{self._scratch}alpha", f"{self._scratch}beta"}
        value = fields.get(key.encode("utf-8"))
        problems = []
        if members != expected:
            problems.append(f"reverse index {sorted(members)!r}")
        if value is None or decode(value) != TAG_FIELD_VALUE:
            problems.append(f"tag field {value!r}")
        if not field_ttl or not 0 < field_ttl[0] <= SCRATCH_TTL:
            problems.append(f"field ttl {field_ttl!r}")
        if score is None:
            problems.append("registry member missing")
        self._record(
            "tag structures",
            not problems,
            "; ".join(problems) or "reverse index, tag field, field TTL and registry",
        )

    async def _check_remember(self) -> None:
        key = self._key("remember")
        cache = self._cache("remember")
        first = await cache.remember(key, SCRATCH_TTL, lambda: "computed")
        second = await cache.remember(key, SCRATCH_TTL, lambda: "recomputed")
        listed = await self._tagged_keys("remember")
        self._record(
            "tagged remember",
            first == second == "computed" and key in listed,
            f"first={first!r} second={second!r}",
        )

    async def _check_multiple_tags(self) -> None:
        key = self._key("multi")
        await self._cache("red", "blue").put(key, "v", SCRATCH_TTL)
        in_both = key in await self._tagged_keys("red") and key in await self._tagged_keys("blue")

        await self._cache("red").flush()
        gone = await self._store.get(key) is None
        self._record(
            "multiple tags",
            in_both and gone,
            "listed under both tags, removed by flushing one" if in_both and gone
            else f"listed under both={in_both} removed={gone}",
        )

    async def _check_shared_tag_flush(self) -> None:
        first, second = self._key("shared-a"), self._key("shared-b")
        await self._cache("tag-a", "shared").put(first, 1, SCRATCH_TTL)
        await self._cache("tag-b", "shared").put(second, 2, SCRATCH_TTL)

        await self._cache("tag-a").flush()

        keys = self._store.context.keys
        tag = f"{self._scratch}tag-a"
        async with self._store.context.connection() as conn:
            hash_left = await conn.exists(keys.tag_hash(tag))
            score = await conn.zscore(keys.registry, tag)
        flushed = await self._store.get(first) is None
        kept = await self._store.get(second) == 2
        self._record(
            "shared tag flush",
            flushed and kept and not hash_left and score is None,
            f"flushed={flushed} other kept={kept} tag hash left={bool(hash_left)} "
            f"registry member left={score is not None}",
        )

    async def _check_counters(self) -> None:
        key = self._key("counter")
        cache = self._cache("counters")
        raised = await cache.increment(key, 5)
        lowered = await cache.decrement(key, 2)
        listed = key in await self._tagged_keys("counters")
        self._record(
            "increment/decrement",
            raised == 5 and lowered == 3 and listed,
            f"increment={raised} decrement={lowered}",
        )

    async def _check_add(self) -> None:
        key = self._key("add")
        cache = self._cache("unique")
        first = await cache.add(key, "first", SCRATCH_TTL)
        second = await cache.add(key, "second", SCRATCH_TTL)
        stored = await self._store.get(key)
        self._record(
            "add",
            first.status is WriteStatus.ADDED
            and second.status is WriteStatus.ALREADY_EXISTS
            and stored == "first",
            f"first={first.status.value} second={second.status.value} value={stored!r}",
        )

    async def _check_forever(self) -> None:
        key = self._key("forever")
        await self._cache("permanent").forever(key, "kept")

        keys = self._store.context.keys
        async with self._store.context.connection() as conn:
            ttl = await conn.ttl(keys.entry(key))
            score = await conn.zscore(keys.registry, f"{self._scratch}permanent")
        self._record(
            "forever",
            ttl == -1 and score == MAX_EXPIRY,
            f"ttl={ttl} registry score={score}",
        )

    async def _check_put_many(self) -> None:
        values = {self._key(f"bulk-{index}"): index for index in range(3)}
        cache = self._cache("bulk")
        await cache.put_many(values, SCRATCH_TTL)
        items = {key: value async for key, value in cache.items()}
        self._record("put many", items == values, f"{len(items)}/{len(values)} entries read back")

    async def _check_prune(self) -> None:
        key = self._key("orphan")
        await self._cache("cleanup").put(key, "v", SCRATCH_TTL)
        async with self._store.context.connection() as conn:
            await conn.delete(self._store.context.keys.entry(key))

        stats = await self._store.prune()
        left = key in await self._tagged_keys("cleanup")
        self._record(
            "prune",
            not left and stats.orphans_removed >= 1,
            f"orphans removed={stats.orphans_removed} orphan left={left}",
        )

    # --- cleanup -----------------------------------------------------------

    async def _cleanup(self) -> None:
        if self._tags:
            await self._store.tags(sorted(self._tags)).flush()
        keys = self._store.context.keys
        async with self._store.context.connection() as conn:
            for key in sorted(self._keys):
                # One key per call: entries hash to different cluster slots
                await conn.delete(keys.entry(key))
                await conn.delete(keys.reverse_index(key))
        logger.debug("doctor_cleaned_up", keys=len(self._keys), tags=len(self._tags))

    async def _verify_cleanup(self) -> None:
        keys = self._store.context.keys
        left: list[str] = []
        async with self._store.context.connection() as conn:
            for tag in sorted(self._tags):
                if await conn.exists(keys.tag_hash(tag)):
                    left.append(keys.tag_hash(tag))
                if await conn.zscore(keys.registry, tag) is not None:
                    left.append(f"registry member {tag}")
            for key in sorted(self._keys):
                for name in (keys.entry(key), keys.reverse_index(key)):
                    if await conn.exists(name):
                        left.append(name)
        self._record(
            "cleanup",
            not left,
            f"left behind: {', '.join(left)}" if left else "no scratch data left",
        )


async def run_doctor(store: RedisTagStore, redis_url: str) -> list[CheckResult]:
    """Run the full doctor against ``store``."""
    return await Doctor(store, redis_url).run()


def summarize(results: list[CheckResult]) -> dict[str, Any]:
    """Counts for the report footer."""
    failed = [result.name for result in results if not result.passed]
    return {"passed": len(results) - len(failed), "failed": failed}
