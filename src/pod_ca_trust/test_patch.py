import json
import os
import subprocess
import sys
import unittest

import jsonpatch

from pod_ca_trust.patch import diff, to_json

SRC_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DIFF_SCRIPT = (
    "import json, sys\n"
    "from pod_ca_trust.patch import diff, to_json\n"
    "original, mutated = json.load(sys.stdin)\n"
    "sys.stdout.write(to_json(diff(original, mutated)))\n"
)


class TestDiff(unittest.TestCase):
    ORIGINAL = {
        "metadata": {"name": "my-pod"},
        "spec": {
            "containers": [{"name": "main", "volumeMounts": [{"name": "data", "mountPath": "/data"}]}],
        },
    }

    MUTATED = {
        "metadata": {"name": "my-pod"},
        "spec": {
            "containers": [{"name": "main", "volumeMounts": [
                {"name": "data", "mountPath": "/data"},
                {"name": "injected-ca", "mountPath": "/etc/ssl/certs/ca.pem"},
            ]}],
            "volumes": [{"name": "injected-ca", "configMap": {"name": "ca"}}],
        },
    }

    def test_equal_trees(self):
        self.assertIsNone(diff(self.ORIGINAL, json.loads(json.dumps(self.ORIGINAL))))

    def test_changed_paths(self):
        ops = diff(self.ORIGINAL, self.MUTATED)
        self.assertEqual({
            "/spec/containers/0/volumeMounts/1",
            "/spec/volumes",
        }, {op["path"] for op in ops})

    def test_patch_reproduces_mutated(self):
        ops = diff(self.ORIGINAL, self.MUTATED)
        self.assertEqual(self.MUTATED, jsonpatch.JsonPatch(ops).apply(self.ORIGINAL))

    def test_scalar_change_is_replace(self):
        mutated = json.loads(json.dumps(self.ORIGINAL))
        mutated["spec"]["containers"][0]["volumeMounts"][0]["mountPath"] = "/srv"
        self.assertEqual([{
            "op": "replace",
            "path": "/spec/containers/0/volumeMounts/0/mountPath",
            "value": "/srv",
        }], diff(self.ORIGINAL, mutated))

    def test_repeatable(self):
        self.assertEqual(to_json(diff(self.ORIGINAL, self.MUTATED)),
                         to_json(diff(self.ORIGINAL, self.MUTATED)))

    def test_to_json(self):
        ops = [{"op": "add", "path": "/spec/volumes", "value": []}]
        self.assertEqual(ops, json.loads(to_json(ops)))

    def test_keys_in_sorted_order(self):
        ops = diff(self.ORIGINAL, self.MUTATED)
        self.assertEqual(["/spec/containers/0/volumeMounts/1", "/spec/volumes"],
                         [op["path"] for op in ops])


class TestDiffAcrossProcesses(unittest.TestCase):

    ORIGINAL = {
        "metadata": {"name": "my-pod", "labels": {"app": "web"}},
        "spec": {
            "containers": [{"name": "main"}],
            "initContainers": [{"name": "init"}],
        },
    }

    MUTATED = {
        "metadata": {"name": "my-pod", "labels": {"app": "web", "tier": "front", "zone": "a"}},
        "spec": {
            "containers": [{"name": "main", "volumeMounts": [{"name": "injected-ca"}]}],
            "initContainers": [{"name": "init", "volumeMounts": [{"name": "injected-ca"}]}],
            "volumes": [{"name": "injected-ca"}],
            "dnsPolicy": "ClusterFirst",
        },
    }

    def diff_with_hash_seed(self, seed):
        env = dict(os.environ, PYTHONHASHSEED=str(seed))
        env["PYTHONPATH"] = os.pathsep.join(p for p in (SRC_DIR, os.environ.get("PYTHONPATH")) if p)
        result = subprocess.run(
            [sys.executable, "-c", DIFF_SCRIPT],
            input=json.dumps([self.ORIGINAL, self.MUTATED]),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
            check=True,
        )
        return result.stdout

    def test_same_bytes_for_any_hash_seed(self):
        outputs = {self.diff_with_hash_seed(seed) for seed in range(6)}
        self.assertEqual(1, len(outputs))
        self.assertEqual(to_json(diff(self.ORIGINAL, self.MUTATED)), outputs.pop())
