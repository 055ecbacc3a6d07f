"""Any-tag (union) operations over Redis."""

from tagcache_ops.any_tag.add import Add
from tagcache_ops.any_tag.counters import Decrement, Increment
from tagcache_ops.any_tag.flush import Flush
from tagcache_ops.any_tag.forever import Forever
from tagcache_ops.any_tag.get_tag_items import GetTagItems
from tagcache_ops.any_tag.get_tagged_keys import GetTaggedKeys
from tagcache_ops.any_tag.prune import Prune
from tagcache_ops.any_tag.put import Put
from tagcache_ops.any_tag.put_many import PutMany
from tagcache_ops.any_tag.remember import Remember, RememberForever

__all__ = [
    "Add",
    "Decrement",
    "Flush",
    "Forever",
    "GetTagItems",
    "GetTaggedKeys",
    "Increment",
    "Prune",
    "Put",
    "PutMany",
    "Remember",
    "RememberForever",
]
