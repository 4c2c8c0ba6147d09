from __future__ import annotations

import importlib.util
import io
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


def _engine(**env):
    from macaroni import Macaroni, from_python

    out = io.StringIO()
    vm = Macaroni(env={name: from_python(value) for name, value in env.items()}, stdout=out, seed=0)
    return vm, out


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for property tests")
class InferredPropertiesTests(unittest.TestCase):
    def test_print_round_trips_string_literals(self) -> None:
        for text in ("Hello", "", "a b\tc", "/\\!?"):
            with self.subTest(text=text):
                vm, out = _engine()
                vm.run(f'print "{text}"')
                self.assertEqual(out.getvalue(), text)

    def test_tobase_frombase_round_trip_integers(self) -> None:
        from macaroni import Number, run

        self.assertEqual(run("frombase tobase 12345 16 16"), Number(12345))
        for base in (2, 3, 8, 10, 16, 36):
            for n in (0, 1, 7, 255, 1000, -42):
                with self.subTest(base=base, n=n):
                    self.assertEqual(run(f"frombase tobase {n} {base} {base}"), Number(n))

    def test_tobase_frombase_round_trip_fractions_within_precision(self) -> None:
        from macaroni import run

        for base in (2, 10, 16):
            with self.subTest(base=base):
                out = run(f"frombase tobase pow 3 -1 {base} {base}")
                self.assertAlmostEqual(out.value, 1 / 3, delta=float(base) ** -9)

    def test_forward_slice_length(self) -> None:
        from macaroni import Number

        vm, _ = _engine(a=[10, 11, 12, 13, 14])
        for i in range(6):
            for j in range(i, 6):
                with self.subTest(i=i, j=j):
                    self.assertEqual(vm.run(f"length slice a {i} {j} 1"), Number(j - i))

    def test_backward_slice_reverses(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(a=[0, 1, 2, 3, 4])
        self.assertEqual(to_python(vm.run("slice a 5 0 -1")), [4.0, 3.0, 2.0, 1.0, 0.0])

    def test_map_preserves_length(self) -> None:
        from macaroni import Number

        for data in ([], [1], [1, [2], 3], list(range(20))):
            with self.subTest(size=len(data)):
                vm, _ = _engine(arr=data)
                vm.run("set out map arr f return label f set _ wrap _ return")
                self.assertEqual(vm.run("length out"), Number(len(data)))

    def test_assignment_is_visible_later_in_the_same_run(self) -> None:
        from macaroni import Number, run

        self.assertEqual(run("set x 3 multiply x 2"), Number(6))
        self.assertEqual(run("multiply never_set 2"), Number(0))

    def test_variables_persist_between_runs(self) -> None:
        vm, out = _engine()
        vm.run("set x 5")
        vm.run("print tobase x 10")
        self.assertEqual(out.getvalue(), "5")


if __name__ == "__main__":
    unittest.main()
