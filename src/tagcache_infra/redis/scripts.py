"""Lua scripts for atomic tagged writes on standalone Redis, and their registry.

Every write script takes ``KEYS[1]`` = cache entry key and ``KEYS[2]`` =
reverse index key, then performs, in order: write the entry, read the old
tag set, HDEL the key from tags it left, replace the reverse index, upsert
the new tag hash fields and raise each tag's registry score with ZADD GT.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass, field
from string import Template
from typing import Any

import structlog
from redis.exceptions import NoScriptError

from tagcache_core.constants import MAX_EXPIRY
from tagcache_core.exceptions import ScriptNotRegisteredError

logger = structlog.get_logger()

# ARGV: value, ttl, tagPrefix, registryKey, now, rawKey, tagHashSuffix, tags...
STORE_WITH_TAGS = """
local key = KEYS[1]
local tagsKey = KEYS[2]
local val = ARGV[1]
local ttl = ARGV[2]
local tagPrefix = ARGV[3]
local registryKey = ARGV[4]
local now = ARGV[5]
local rawKey = ARGV[6]
local tagHashSuffix = ARGV[7]
local expiry = now + ttl

redis.call('SETEX', key, ttl, val)

local oldTags = redis.call('SMEMBERS', tagsKey)
local newTagsMap = {}
local newTagsList = {}
for i = 8, #ARGV do
    local tag = ARGV[i]
    newTagsMap[tag] = true
    table.insert(newTagsList, tag)
end

for _, tag in ipairs(oldTags) do
    if not newTagsMap[tag] then
        redis.call('HDEL', tagPrefix .. tag .. tagHashSuffix, rawKey)
    end
end

redis.call('DEL', tagsKey)
if #newTagsList > 0 then
    redis.call('SADD', tagsKey, unpack(newTagsList))
    redis.call('EXPIRE', tagsKey, ttl)
end

for _, tag in ipairs(newTagsList) do
    local tagHash = tagPrefix .. tag .. tagHashSuffix
    redis.call('HSETEX', tagHash, 'EX', ttl, 'FIELDS', 1, rawKey, '1')
    redis.call('ZADD', registryKey, 'GT', expiry, tag)
end

return 1
"""

# ARGV: value, ttl, tagPrefix, registryKey, now, rawKey, tagHashSuffix, tags...
# Returns nil when the key already exists; tag structures are then untouched.
ADD_WITH_TAGS = """
local key = KEYS[1]
local tagsKey = KEYS[2]
local val = ARGV[1]
local ttl = ARGV[2]
local tagPrefix = ARGV[3]
local registryKey = ARGV[4]
local now = ARGV[5]
local rawKey = ARGV[6]
local tagHashSuffix = ARGV[7]
local expiry = now + ttl

local added = redis.call('SET', key, val, 'EX', ttl, 'NX')
if not added then
    return false
end

local oldTags = redis.call('SMEMBERS', tagsKey)
local newTagsMap = {}
local newTagsList = {}
for i = 8, #ARGV do
    local tag = ARGV[i]
    newTagsMap[tag] = true
    table.insert(newTagsList, tag)
end

for _, tag in ipairs(oldTags) do
    if not newTagsMap[tag] then
        redis.call('HDEL', tagPrefix .. tag .. tagHashSuffix, rawKey)
    end
end

redis.call('DEL', tagsKey)
if #newTagsList > 0 then
    redis.call('SADD', tagsKey, unpack(newTagsList))
    redis.call('EXPIRE', tagsKey, ttl)
end

for _, tag in ipairs(newTagsList) do
    local tagHash = tagPrefix .. tag .. tagHashSuffix
    redis.call('HSET', tagHash, rawKey, '1')
    redis.call('HEXPIRE', tagHash, ttl, 'FIELDS', 1, rawKey)
    redis.call('ZADD', registryKey, 'GT', expiry, tag)
end

return 1
"""

# ARGV: value, tagPrefix, registryKey, rawKey, tagHashSuffix, tags...
_STORE_FOREVER_WITH_TAGS = Template("""
local key = KEYS[1]
local tagsKey = KEYS[2]
local val = ARGV[1]
local tagPrefix = ARGV[2]
local registryKey = ARGV[3]
local rawKey = ARGV[4]
local tagHashSuffix = ARGV[5]

redis.call('SET', key, val)

local oldTags = redis.call('SMEMBERS', tagsKey)
local newTagsMap = {}
local newTagsList = {}
for i = 6, #ARGV do
    local tag = ARGV[i]
    newTagsMap[tag] = true
    table.insert(newTagsList, tag)
end

for _, tag in ipairs(oldTags) do
    if not newTagsMap[tag] then
        redis.call('HDEL', tagPrefix .. tag .. tagHashSuffix, rawKey)
    end
end

redis.call('DEL', tagsKey)
if #newTagsList > 0 then
    redis.call('SADD', tagsKey, unpack(newTagsList))
end

local expiry = $max_expiry
for _, tag in ipairs(newTagsList) do
    redis.call('HSET', tagPrefix .. tag .. tagHashSuffix, rawKey, '1')
    redis.call('ZADD', registryKey, 'GT', expiry, tag)
end

return 1
""")

STORE_FOREVER_WITH_TAGS = _STORE_FOREVER_WITH_TAGS.substitute(max_expiry=MAX_EXPIRY)

# ARGV: delta, tagPrefix, registryKey, now, rawKey, tagHashSuffix, tags...
# $command is INCRBY or DECRBY, $max_expiry the score of a tag with no expiry.
# Returns the new counter value.
_COUNTER_WITH_TAGS = Template("""
local key = KEYS[1]
local tagsKey = KEYS[2]
local delta = tonumber(ARGV[1])
local tagPrefix = ARGV[2]
local registryKey = ARGV[3]
local now = ARGV[4]
local rawKey = ARGV[5]
local tagHashSuffix = ARGV[6]

local newValue = redis.call('$command', key, delta)

local ttl = redis.call('TTL', key)
local expiry = $max_expiry
if ttl > 0 then
    expiry = now + ttl
end

local oldTags = redis.call('SMEMBERS', tagsKey)
local newTagsMap = {}
local newTagsList = {}
for i = 7, #ARGV do
    local tag = ARGV[i]
    newTagsMap[tag] = true
    table.insert(newTagsList, tag)
end

for _, tag in ipairs(oldTags) do
    if not newTagsMap[tag] then
        redis.call('HDEL', tagPrefix .. tag .. tagHashSuffix, rawKey)
    end
end

redis.call('DEL', tagsKey)
if #newTagsList > 0 then
    redis.call('SADD', tagsKey, unpack(newTagsList))
    if ttl > 0 then
        redis.call('EXPIRE', tagsKey, ttl)
    end
end

for _, tag in ipairs(newTagsList) do
    local tagHash = tagPrefix .. tag .. tagHashSuffix
    if ttl > 0 then
        redis.call('HSETEX', tagHash, 'EX', ttl, 'FIELDS', 1, rawKey, '1')
    else
        redis.call('HSET', tagHash, rawKey, '1')
    end
    redis.call('ZADD', registryKey, 'GT', expiry, tag)
end

return newValue
""")

INCREMENT_WITH_TAGS = _COUNTER_WITH_TAGS.substitute(command="INCRBY", max_expiry=MAX_EXPIRY)
DECREMENT_WITH_TAGS = _COUNTER_WITH_TAGS.substitute(command="DECRBY", max_expiry=MAX_EXPIRY)


@dataclass(frozen=True)
class LuaScript:
    """A named script and the SHA1 Redis caches it under."""

    name: str
    source: str
    sha: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sha", hashlib.sha1(self.source.encode("utf-8")).hexdigest())  # noqa: S324


class ScriptRegistry:
    """Holds named Lua scripts and runs them SHA-first.

    ``EVALSHA`` is tried first; on ``NOSCRIPT`` the full source is sent with
    ``EVAL``, which also loads it into the server's script cache. Any other
    error reply propagates unchanged.
    """

    def __init__(self, scripts: dict[str, str] | None = None) -> None:
        """Initialize, optionally registering ``name -> source`` pairs."""
        self._scripts: dict[str, LuaScript] = {}
        for name, source in (scripts or {}).items():
            self.register(name, source)

    def register(self, name: str, source: str) -> LuaScript:
        """Add or replace a script."""
        script = LuaScript(name=name, source=source)
        self._scripts[name] = script
        return script

    def get(self, name: str) -> LuaScript:
        """Look up a registered script."""
        try:
            return self._scripts[name]
        except KeyError as exc:
            msg = f"No Lua script registered under {name!r}"
            raise ScriptNotRegisteredError(msg) from exc

    def __contains__(self, name: object) -> bool:
        return name in self._scripts

    async def execute(
        self,
        conn: Any,  # noqa: ANN401
        name: str,
        keys: Sequence[str],
        args: Sequence[Any],
    ) -> Any:  # noqa: ANN401
        """Run a registered script against a connection."""
        script = self.get(name)
        try:
            return await conn.evalsha(script.sha, len(keys), *keys, *args)
        except NoScriptError:
            logger.debug("script_cache_miss", script=name, sha=script.sha)
            return await conn.eval(script.source, len(keys), *keys, *args)


def default_scripts() -> ScriptRegistry:
    """Registry preloaded with every any-tag write script."""
    return ScriptRegistry(
        {
            "store_with_tags": STORE_WITH_TAGS,
            "add_with_tags": ADD_WITH_TAGS,
            "store_forever_with_tags": STORE_FOREVER_WITH_TAGS,
            "increment_with_tags": INCREMENT_WITH_TAGS,
            "decrement_with_tags": DECREMENT_WITH_TAGS,
        }
    )
