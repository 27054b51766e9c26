import unittest

from patchrack.audio import Add, Saw, Scale
from patchrack.rack import PatchError, Rack

SR = 48000


class TestRackRegistration(unittest.TestCase):
    def test_ports_follow_control_inputs(self):
        rack = Rack(4)
        self.assertEqual(rack.port_count, 4)
        first = rack.register_module(Scale(1.0))
        second = rack.register_module(Scale(1.0))
        self.assertEqual((first, second), (4, 5))
        self.assertEqual(len(rack), 2)
        self.assertTrue(rack.is_module_port(5))
        self.assertFalse(rack.is_module_port(3))

    def test_no_output_is_silent(self):
        rack = Rack(1)
        rack.register_module(Saw(1000.0, sample_rate=SR))
        self.assertEqual([rack.get() for _ in range(5)], [0.0] * 5)

    def test_invalid_patches(self):
        rack = Rack(2)
        scale = rack.register_module(Scale(1.0))
        with self.assertRaises(PatchError):
            rack.patch(99, (scale, 0))
        with self.assertRaises(PatchError):
            rack.patch(0, (1, 0))
        with self.assertRaises(PatchError):
            rack.patch(0, (scale, -1))
        with self.assertRaises(PatchError):
            rack.set_output(42)
        with self.assertRaises(ValueError):
            rack.module_at(0)

    def test_fix_input_rejects_unknown_ports(self):
        rack = Rack(2)
        rack.register_module(Scale(1.0))
        with self.assertRaises(PatchError):
            rack.fix_input(-1, 5.0)
        with self.assertRaises(PatchError):
            rack.fix_input(3, 5.0)
        self.assertEqual(rack.buffer, [0.0, 0.0, 0.0])


class TestRackEvaluation(unittest.TestCase):
    def test_chain_has_one_sample_lag(self):
        reference = Saw(1000.0, sample_rate=SR)
        expected = [reference.get() for _ in range(20)]

        rack = Rack(1)
        saw = rack.register_module(Saw(1000.0, sample_rate=SR))
        scale = rack.register_module(Scale(1.0))
        rack.patch(saw, (scale, 0))
        rack.set_output(scale)
        out = [rack.get() for _ in range(21)]

        self.assertEqual(out[0], 0.0)
        for n in range(1, 21):
            self.assertAlmostEqual(out[n], expected[n - 1])

    def test_feedback_integrator(self):
        rack = Rack(1)
        add = rack.register_module(Add())
        rack.patch(0, (add, 1))
        rack.patch(add, (add, 0))
        rack.set_output(add)
        rack.process_control(0, 127)
        self.assertEqual([rack.get() for _ in range(5)], [1.0, 2.0, 3.0, 4.0, 5.0])

    def test_fan_out(self):
        rack = Rack(1)
        saw = rack.register_module(Saw(1000.0, sample_rate=SR))
        double = rack.register_module(Scale(2.0))
        negate = rack.register_module(Scale(-1.0))
        rack.patch(saw, (double, 0))
        rack.patch(saw, (negate, 0))
        rack.set_output(double)
        for _ in range(10):
            rack.get()
        self.assertAlmostEqual(rack.module_at(double).get(), -2.0 * rack.module_at(negate).get())

    def test_control_propagates_immediately(self):
        rack = Rack(2)
        scale = rack.register_module(Scale(2.0))
        rack.patch(1, (scale, 0))
        rack.set_output(scale)
        rack.process_control(1, 127)
        self.assertEqual(rack.module_at(scale).get(), 2.0)
        self.assertEqual(rack.get(), 2.0)
        rack.process_control(1, 0)
        self.assertEqual(rack.get(), 0.0)

    def test_control_value_mapping(self):
        rack = Rack(2)
        rack.process_control(0, 64)
        self.assertAlmostEqual(rack.buffer[0], 64 / 127)

    def test_out_of_range_control_is_ignored(self):
        rack = Rack(2)
        rack.process_control(5, 127)
        rack.process_control(-1, 127)
        self.assertEqual(rack.buffer, [0.0, 0.0])

    def test_last_writer_wins(self):
        rack = Rack(2)
        scale = rack.register_module(Scale(1.0))
        rack.patch(0, (scale, 0))
        rack.patch(1, (scale, 0))
        rack.set_output(scale)
        rack.process_control(0, 127)
        rack.process_control(1, 0)
        self.assertEqual(rack.get(), 0.0)

    def test_fix_input_does_not_propagate(self):
        rack = Rack(1)
        scale = rack.register_module(Scale(1.0))
        rack.patch(0, (scale, 0))
        rack.fix_input(0, 0.5)
        rack.get()
        self.assertEqual(rack.buffer[0], 0.5)
        self.assertEqual(rack.module_at(scale).get(), 0.0)

    def test_set_input_bypasses_bus(self):
        rack = Rack(1)
        scale = rack.register_module(Scale(3.0))
        rack.set_output(scale)
        rack.set_input(scale, 0, 2.0)
        self.assertEqual(rack.get(), 6.0)

    def test_clone_is_independent(self):
        rack = Rack(1)
        saw = rack.register_module(Saw(1000.0, sample_rate=SR))
        rack.set_output(saw)
        copy = rack.clone()
        first = [rack.get() for _ in range(10)]
        self.assertEqual([copy.get() for _ in range(10)], first)
        self.assertIsNot(copy.module_at(saw), rack.module_at(saw))


if __name__ == '__main__':
    unittest.main()
