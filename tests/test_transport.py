"""
晶片判定与输运的单元测试
"""

import math

import numpy as np
import pytest

from rowland_simulation.core.constants import K2V
from rowland_simulation.core.data_classes import NeutronState, Outcome
from rowland_simulation.core.geometry import from_planar
from rowland_simulation.core.simulation import focus_miss_distance
from rowland_simulation.core.transport import (
    find_slab_index,
    from_slab_frame,
    interact_with_array,
    locate_slab,
    to_slab_frame,
)
from rowland_simulation.testing import bragg_wavelength, create_reference_monochromator


def neutron_towards(start, target, wavelength):
    """从 start 指向 target 的中子"""
    direction = np.asarray(target, dtype=float) - start
    direction /= np.linalg.norm(direction)
    speed = K2V * 2.0 * math.pi / wavelength
    return NeutronState(position=start, velocity=speed * direction)


@pytest.fixture
def monochromator():
    return create_reference_monochromator('standard', focusing='exact')


class TestSlabDispatch:
    """测试晶片窗口判定"""

    def test_center_slab(self, monochromator):
        """测试射向原点的中子落在中心晶片"""
        geometry = monochromator.geometry
        state = neutron_towards(from_planar(geometry.source), np.zeros(3), 4.0)
        assert locate_slab(state, geometry) == 3

    def test_every_slab_reachable(self, monochromator):
        """测试射向每个晶片中心的中子落在对应窗口"""
        geometry = monochromator.geometry
        for h in range(geometry.n_slabs):
            state = neutron_towards(from_planar(geometry.source), geometry.positions[h], 4.0)
            assert locate_slab(state, geometry) == h

    def test_window_lookup(self, monochromator):
        """测试方位角落入窗口及窗口外返回 None"""
        geometry = monochromator.geometry
        edges = geometry.edges
        for h in range(geometry.n_slabs):
            assert find_slab_index(0.5 * (edges[h] + edges[h + 1]), geometry) == h
            assert find_slab_index(0.5 * (edges[h] + edges[h + 1]) + 2.0 * math.pi, geometry) == h
        assert find_slab_index(edges[0] - 1e-6, geometry) is None
        assert find_slab_index(edges[-1], geometry) is None

    def test_miss_leaves_state_untouched(self, monochromator):
        """测试未击中阵列的中子状态不变"""
        geometry = monochromator.geometry
        start = from_planar(geometry.source)
        state = neutron_towards(start, 2.0 * start, 4.0)
        before = state.copy()
        outcome, index = interact_with_array(state, monochromator, np.random.default_rng(0))
        assert outcome is Outcome.NO_INTERACTION
        assert index is None
        np.testing.assert_array_equal(state.position, before.position)
        np.testing.assert_array_equal(state.velocity, before.velocity)
        assert state.weight == before.weight
        assert state.t == before.t

    def test_above_array(self, monochromator):
        """测试从阵列上方经过的中子"""
        geometry = monochromator.geometry
        start = from_planar(geometry.source)
        state = neutron_towards(start, np.array([0.0, 0.1, 0.0]), 4.0)
        outcome, _ = interact_with_array(state, monochromator, np.random.default_rng(0))
        assert outcome is Outcome.NO_INTERACTION


class TestSlabFrames:
    """测试晶片坐标系变换"""

    def test_round_trip(self, monochromator):
        """测试进入晶片坐标系再返回恢复原值"""
        geometry = monochromator.geometry
        rng = np.random.default_rng(1)
        for h in range(geometry.n_slabs):
            vectors = tuple(rng.normal(size=3) for _ in range(3))
            back = from_slab_frame(to_slab_frame(vectors, geometry, h), geometry, h)
            for original, result in zip(vectors, back):
                np.testing.assert_allclose(result, original, atol=1e-12)

    def test_slab_normal_is_x(self, monochromator):
        """测试晶片法线在晶片坐标系中为 x 轴"""
        geometry = monochromator.geometry
        h = 0
        tilt = geometry.tilts[h]
        normal = np.array([math.cos(tilt), 0.0, -math.sin(tilt)])
        _, local, _ = to_slab_frame((geometry.positions[h], normal, np.zeros(3)), geometry, h)
        np.testing.assert_allclose(local, [1.0, 0.0, 0.0], atol=1e-12)


class TestInteraction:
    """测试阵列相互作用"""

    def test_nominal_reflection_reaches_focus(self):
        """测试零镶嵌中心晶片的名义反射射向汇点"""
        monochromator = create_reference_monochromator('standard', focusing='exact', mosaic=0.0, r0=1.0)
        geometry = monochromator.geometry
        wavelength = bragg_wavelength(3.355, 37.0)
        sink = from_planar(geometry.sink)
        rng = np.random.default_rng(2)
        for _ in range(20):
            state = neutron_towards(from_planar(geometry.source), np.zeros(3), wavelength)
            outcome, index = interact_with_array(state, monochromator, rng)
            assert index == 3
            if outcome is Outcome.SCATTERED:
                np.testing.assert_allclose(state.position, np.zeros(3), atol=1e-9)
                assert focus_miss_distance(state.position, state.velocity, sink) == pytest.approx(0.0, abs=1e-9)
                return
        pytest.fail("nominal reflection never scattered")

    def test_exact_focusing_off_center(self):
        """测试精确聚焦时离轴晶片的名义反射同样射向汇点"""
        monochromator = create_reference_monochromator('standard', focusing='exact', mosaic=0.0, r0=1.0)
        geometry = monochromator.geometry
        wavelength = bragg_wavelength(3.355, 37.0)
        sink = from_planar(geometry.sink)
        rng = np.random.default_rng(3)
        for h in (0, 6):
            for _ in range(20):
                state = neutron_towards(from_planar(geometry.source), geometry.positions[h], wavelength)
                outcome, index = interact_with_array(state, monochromator, rng)
                if outcome is Outcome.SCATTERED:
                    assert index == h
                    miss = focus_miss_distance(state.position, state.velocity, sink)
                    assert miss == pytest.approx(0.0, abs=1e-6)
                    break
            else:
                pytest.fail(f"slab {h} never scattered")

    def test_zero_reflectivity(self):
        """测试 r0=0 时击中晶片的中子从不散射"""
        monochromator = create_reference_monochromator('standard', r0=0.0, t0=0.9)
        geometry = monochromator.geometry
        rng = np.random.default_rng(4)
        wavelength = bragg_wavelength(3.355, 37.0)
        for h in range(geometry.n_slabs):
            state = neutron_towards(from_planar(geometry.source), geometry.positions[h], wavelength)
            v_in = state.velocity.copy()
            outcome, index = interact_with_array(state, monochromator, rng)
            assert outcome is Outcome.TRANSMITTED
            assert index == h
            assert state.weight == pytest.approx(0.9)
            np.testing.assert_allclose(state.velocity, v_in)

    def test_absorption_flag(self):
        """测试吸收时设置标志"""
        monochromator = create_reference_monochromator('standard', r0=0.0, t0=0.0)
        geometry = monochromator.geometry
        state = neutron_towards(from_planar(geometry.source), np.zeros(3), 4.0)
        outcome, _ = interact_with_array(state, monochromator, np.random.default_rng(0))
        assert outcome is Outcome.ABSORBED
        assert state.absorbed

    def test_time_advances(self, monochromator):
        """测试飞行时间增加"""
        geometry = monochromator.geometry
        start = from_planar(geometry.source)
        state = neutron_towards(start, np.zeros(3), 4.0)
        speed = np.linalg.norm(state.velocity)
        outcome, _ = interact_with_array(state, monochromator, np.random.default_rng(0))
        assert outcome is not Outcome.NO_INTERACTION
        assert state.t == pytest.approx(np.linalg.norm(start) / speed)
