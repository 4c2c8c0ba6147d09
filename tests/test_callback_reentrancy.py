from __future__ import annotations

import importlib.util
import io
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None

SUBTRACT_CMP = """
label cmp
set a unwrap slice _ 0 1 1
set b unwrap slice _ 1 2 1
set _ add a multiply -1 b
return
"""

KEY_CMP = """
label bykey
set a unwrap slice unwrap slice _ 0 1 1 0 1 1
set b unwrap slice unwrap slice _ 1 2 1 0 1 1
set _ add a multiply -1 b
return
"""


def _engine(**env):
    from macaroni import Macaroni, from_python

    out = io.StringIO()
    vm = Macaroni(env={name: from_python(value) for name, value in env.items()}, stdout=out, seed=0)
    return vm, out


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for callback tests")
class CallbackReentrancyTests(unittest.TestCase):
    def test_map_over_a_string(self) -> None:
        vm, out = _engine()
        vm.run(
            """
            print map "abc" inc
            return
            label inc
            set _ add _ 1
            return
            """
        )
        self.assertEqual(out.getvalue(), "bcd")

    def test_map_writes_and_reads_the_reserved_slot(self) -> None:
        from macaroni import Number, to_python

        vm, _ = _engine(data=[1, 2, 3])
        vm.run("set out map data sq return label sq set _ multiply _ _ return")
        self.assertEqual(to_python(vm.env["out"]), [1.0, 4.0, 9.0])
        # The slot keeps the last callback result.
        self.assertEqual(vm.env["_"], Number(9))

    def test_callback_without_assignment_returns_its_argument(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[[1], [2, 3]])
        vm.run("set out map data id return label id return")
        self.assertEqual(to_python(vm.env["out"]), [[1.0], [2.0, 3.0]])

    def test_sort_with_subtracting_comparator(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[3, 1, 2])
        vm.run("set out sort data cmp return" + SUBTRACT_CMP)
        self.assertEqual(to_python(vm.env["out"]), [1.0, 2.0, 3.0])
        self.assertEqual(to_python(vm.env["data"]), [3.0, 1.0, 2.0])

    def test_sort_is_stable(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[[2, 0], [1, 1], [2, 2], [1, 3]])
        vm.run("set out sort data bykey return" + KEY_CMP)
        self.assertEqual(
            to_python(vm.env["out"]),
            [[1.0, 1.0], [1.0, 3.0], [2.0, 0.0], [2.0, 2.0]],
        )

    def test_sort_comparator_must_produce_a_number(self) -> None:
        from macaroni import MacaroniTypeError

        vm, _ = _engine(data=[2, 1])
        with self.assertRaises(MacaroniTypeError):
            vm.run("sort data bad return label bad return")

    def test_index_keeps_truthy_positions(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[1, 2, 3, 2])
        vm.run("set out index data not2 return label not2 set _ add _ -2 return")
        self.assertEqual(to_python(vm.env["out"]), [0.0, 2.0])

    def test_index_treats_arrays_by_emptiness(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[[], [0], []])
        vm.run("set out index data id return label id return")
        self.assertEqual(to_python(vm.env["out"]), [1.0])

    def test_callback_return_does_not_unwind_the_caller(self) -> None:
        vm, out = _engine(data=[1, 2])
        vm.run(
            """
            goto sub
            print "after"
            return
            label sub
            set out map data f
            print "sub-done "
            return
            label f
            set _ add _ 100
            return
            """
        )
        self.assertEqual(out.getvalue(), "sub-done after")

    def test_labels_are_global_to_callback_frames(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[1, 2, 3])
        vm.run(
            """
            set out map data f
            return
            label f
            goto dbl
            set _ add _ 1
            return
            label dbl
            set _ multiply _ 2
            return
            """
        )
        self.assertEqual(to_python(vm.env["out"]), [3.0, 5.0, 7.0])

    def test_callback_running_off_the_end_terminates_its_frame(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(data=[1, 2])
        vm.run("set out map data neg return label neg set _ multiply _ -1")
        self.assertEqual(to_python(vm.env["out"]), [-1.0, -2.0])

    def test_nested_higher_order_calls(self) -> None:
        from macaroni import to_python

        vm, _ = _engine(grid=[[1, 2], [3]])
        vm.run(
            """
            set out map grid row
            return
            label row
            set _ map _ inc
            return
            label inc
            set _ add _ 1
            return
            """
        )
        self.assertEqual(to_python(vm.env["out"]), [[2.0, 3.0], [4.0]])
        self.assertEqual(vm.frames, ())

    def test_callback_name_must_be_a_name(self) -> None:
        from macaroni import MacaroniStructureError

        vm, _ = _engine(data=[1])
        for source in ("map data 5", "sort data 5", 'index data "f"'):
            with self.subTest(source=source):
                with self.assertRaises(MacaroniStructureError):
                    vm.run(source)

    def test_unknown_callback_label(self) -> None:
        from macaroni import MacaroniLabelError

        vm, _ = _engine(data=[])
        with self.assertRaises(MacaroniLabelError):
            vm.run("map data nowhere")

    def test_call_label_from_host(self) -> None:
        from macaroni import Number, parse

        vm, _ = _engine()
        program = parse("label twice set _ multiply _ 2 return")
        # Drive the launcher directly while a program is installed.
        vm._program = program
        try:
            self.assertEqual(vm.call_label("twice", Number(21)), Number(42))
            self.assertEqual(vm.frames, ())
        finally:
            vm._program = None


if __name__ == "__main__":
    unittest.main()
