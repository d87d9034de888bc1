# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for angle wrapping and the S¹ state manifold."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from shootax.core import StateS1
from shootax.utils import get_s1_wrapper, wrap_to_pi

config.update('jax_enable_x64', True)


class WrapToPiTest(parameterized.TestCase):

    def test_wrap_pi(self):
        """π should wrap to -π."""
        self.assertAlmostEqual(float(wrap_to_pi(jnp.array(jnp.pi))), -np.pi, places=9)

    @parameterized.parameters(0.0, np.pi / 2, -np.pi / 2, -3 * np.pi / 4)
    def test_in_range_unchanged(self, angle):
        self.assertAlmostEqual(float(wrap_to_pi(jnp.array(angle))), angle, places=9)

    @parameterized.parameters(
        (3.5 * np.pi, -0.5 * np.pi),
        (2.5 * np.pi, 0.5 * np.pi),
        (-2.5 * np.pi, -0.5 * np.pi),
        (7.0, 7.0 - 2 * np.pi),
    )
    def test_out_of_range(self, angle, expected):
        self.assertAlmostEqual(float(wrap_to_pi(jnp.array(angle))), expected, places=9)

    def test_wrap_jittable(self):
        result = jax.jit(wrap_to_pi)(jnp.array([3.5 * jnp.pi, -7 * jnp.pi]))
        self.assertTrue(bool(jnp.all((result >= -jnp.pi) & (result < jnp.pi))))


class GetS1WrapperTest(parameterized.TestCase):

    @parameterized.parameters((None,), ((),))
    def test_identity(self, indices):
        x = jnp.array([10.0, -20.0, 30.0])
        np.testing.assert_array_equal(get_s1_wrapper(indices)(x), x)

    def test_only_listed_indices_wrapped(self):
        wrapper = get_s1_wrapper((0, 2))
        x = jnp.array([3.5 * jnp.pi, 2.0 * jnp.pi, 2.5 * jnp.pi, 4.0])
        result = wrapper(x)
        np.testing.assert_allclose(result, [-0.5 * np.pi, 2 * np.pi, 0.5 * np.pi, 4.0])


class StateS1Test(parameterized.TestCase):

    def setUp(self):
        super().setUp()
        self.state = StateS1(3, s1_indices=(2,))

    def test_diff_takes_short_arc(self):
        dx = self.state.diff(jnp.array([0., 0., 3.0]), jnp.array([1., 2., -3.0]))
        np.testing.assert_allclose(dx, [1.0, 2.0, 2 * np.pi - 6.0], atol=1e-12)

    def test_integrate_wraps(self):
        x = self.state.integrate(jnp.array([0., 0., 3.0]), jnp.array([0., 0., 0.5]))
        self.assertAlmostEqual(float(x[2]), 3.5 - 2 * np.pi, places=12)

    def test_integrate_inverts_diff(self):
        x0 = jnp.array([0.3, -1.0, 2.9])
        x1 = jnp.array([-0.2, 0.4, -2.8])
        x = self.state.integrate(x0, self.state.diff(x0, x1))
        np.testing.assert_allclose(x, x1, atol=1e-12)

    def test_rand_is_wrapped(self):
        x = self.state.rand(jax.random.PRNGKey(3))
        self.assertEqual(x.shape, (3,))
        self.assertTrue(-np.pi <= float(x[2]) < np.pi)

    def test_invalid_index(self):
        with self.assertRaises(ValueError):
            StateS1(2, s1_indices=(2,))


if __name__ == '__main__':
    absltest.main()
