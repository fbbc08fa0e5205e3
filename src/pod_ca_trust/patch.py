import json

import jsonpatch


class SortedDiffBuilder(jsonpatch.DiffBuilder):
    """DiffBuilder visiting object keys in sorted order.

    The stock builder walks keys through sets, so the operation order
    follows the interpreter's string hashing.
    """

    def _compare_dicts(self, path, src, dst):
        for key in sorted(set(src) | set(dst)):
            if key not in dst:
                self._item_removed(path, str(key), src[key])
            elif key not in src:
                self._item_added(path, str(key), dst[key])
            else:
                self._compare_values(path, key, src[key], dst[key])


def diff(original, mutated):
    """Return the RFC 6902 operations turning `original` into `mutated`.

    Both arguments are plain JSON trees. Returns None when they are equal.
    Identical inputs always give the same operations in the same order.
    """
    builder = SortedDiffBuilder(original, mutated, dumps=json.dumps, pointer_cls=jsonpatch.JsonPointer)
    builder._compare_values('', None, original, mutated)
    ops = list(builder.execute())
    if not ops:
        return None
    return ops


def to_json(ops):
    return json.dumps(ops, separators=(",", ":"))
