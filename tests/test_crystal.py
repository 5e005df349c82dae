"""
镶嵌晶体散射引擎的单元测试
"""

import math

import numpy as np
import pytest

from rowland_simulation.core.constants import CLAMP_STATS, reset_clamp_stats
from rowland_simulation.core.crystal import (
    acceptance_probability,
    adapt_sampling_width,
    clamp_reflectivity,
    clamp_transmission,
    crystal_interaction,
    debye_scherrer_basis,
    find_bragg_order,
    sample_scattering_vector,
)
from rowland_simulation.core.data_classes import CrystalProperties, LookupTable, Outcome

TAU_PG002 = 2.0 * math.pi / 3.355


def bragg_wavevector(k: float, tau: float, order: int = 1) -> np.ndarray:
    """入射波矢，精确满足 Bragg 条件，从 +x 一侧射入"""
    theta = math.asin(order * tau / (2.0 * k))
    return k * np.array([-math.sin(theta), 0.0, math.cos(theta)])


@pytest.fixture
def mosaic_crystal():
    return CrystalProperties.from_parameters(mosaic=30.0, d_spacing=3.355, r0=0.8, t0=1.0)


@pytest.fixture
def perfect_crystal():
    return CrystalProperties.from_parameters(mosaic=0.0, d_spacing=3.355, r0=1.0, t0=1.0)


class TestCrystalProperties:
    """测试晶体参数"""

    def test_from_parameters(self):
        """测试由 FWHM 角分换算 RMS 弧度"""
        crystal = CrystalProperties.from_parameters(mosaic_h=30.0, mosaic_v=60.0, d_spacing=3.355)
        fwhm_to_rms = 1.0 / math.sqrt(8.0 * math.log(2.0))
        assert crystal.tau == pytest.approx(TAU_PG002)
        assert crystal.rms_y == pytest.approx(math.radians(30.0 / 60.0) * fwhm_to_rms)
        assert crystal.rms_z == pytest.approx(math.radians(1.0) * fwhm_to_rms)
        assert crystal.rms_max == crystal.rms_z

    def test_isotropic_mosaic_overrides(self):
        """测试各向同性镶嵌覆盖单轴参数"""
        crystal = CrystalProperties.from_parameters(mosaic=20.0, mosaic_h=50.0, q=1.0)
        assert crystal.rms_y == crystal.rms_z

    def test_explicit_q_wins(self):
        """测试显式散射矢量优先于晶面间距"""
        crystal = CrystalProperties.from_parameters(q=2.5, d_spacing=3.355)
        assert crystal.tau == 2.5

    @pytest.mark.parametrize("kwargs", [
        dict(tau=0.0),
        dict(tau=1.0, r0=-0.1),
        dict(tau=1.0, rms_y=-1.0),
    ])
    def test_invalid(self, kwargs):
        """测试非法参数报错"""
        with pytest.raises(ValueError):
            CrystalProperties(**kwargs)

    def test_order_made_positive(self):
        """测试负的衍射级取绝对值"""
        assert CrystalProperties(tau=1.0, order=-2).order == 2


class TestClamps:
    """测试概率截断"""

    def setup_method(self):
        reset_clamp_stats()

    def test_reflectivity_range(self):
        """测试反射率截断到 [0, 0.999]"""
        assert clamp_reflectivity(1.5) == 0.999
        assert clamp_reflectivity(1.0) == 0.999
        assert clamp_reflectivity(-0.2) == 0.0
        assert clamp_reflectivity(0.4) == 0.4
        assert CLAMP_STATS['reflectivity_clamped'] == 2

    def test_transmission_range(self):
        """测试透射率大于 1 时截断"""
        assert clamp_transmission(1.2) == 0.999
        assert clamp_transmission(0.5) == 0.5
        assert CLAMP_STATS['transmission_clamped'] == 1


class TestBraggOrder:
    """测试衍射级选择"""

    def test_first_order(self):
        """测试一级反射"""
        ki = bragg_wavevector(2.0, TAU_PG002)
        order, q0x = find_bragg_order(ki, TAU_PG002)
        assert order == 1
        assert q0x == pytest.approx(TAU_PG002)

    def test_entering_from_back(self):
        """测试从背面入射时散射矢量反向"""
        ki = bragg_wavevector(2.0, TAU_PG002) * np.array([-1.0, 1.0, 1.0])
        order, q0x = find_bragg_order(ki, TAU_PG002)
        assert order == 1
        assert q0x == pytest.approx(-TAU_PG002)

    def test_second_order(self):
        """测试二级反射"""
        ki = bragg_wavevector(4.0, TAU_PG002, order=2)
        order, _ = find_bragg_order(ki, TAU_PG002)
        assert order == 2

    def test_too_slow(self):
        """测试波矢不足以散射"""
        ki = np.array([-0.5, 0.0, 0.1])
        assert find_bragg_order(ki, TAU_PG002) is None

    def test_fixed_order_mismatch(self):
        """测试固定衍射级不匹配时不散射"""
        ki = bragg_wavevector(2.0, TAU_PG002)
        assert find_bragg_order(ki, TAU_PG002, fixed_order=2) is None


class TestAcceptance:
    """测试接受概率"""

    def test_perfect_crystal_at_bragg(self, perfect_crystal):
        """测试零镶嵌且精确满足 Bragg 条件时接受概率趋于 1"""
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta, p = acceptance_probability(ki, TAU_PG002, 0.999, perfect_crystal)
        assert theta == pytest.approx(math.asin(TAU_PG002 / 4.0))
        assert p == pytest.approx(0.999)

    def test_perfect_crystal_off_bragg(self, perfect_crystal):
        """测试零镶嵌偏离 Bragg 条件时不反射"""
        ki = bragg_wavevector(2.05, TAU_PG002)
        _, p = acceptance_probability(ki * 1.0, TAU_PG002 * 1.01, 0.999, perfect_crystal)
        assert p == 0.0

    def test_probability_bounds(self, mosaic_crystal):
        """测试随机入射的接受概率位于 [0, 1]"""
        rng = np.random.default_rng(3)
        for _ in range(200):
            ki = bragg_wavevector(2.0, TAU_PG002) + rng.normal(scale=0.05, size=3)
            bragg = find_bragg_order(ki, mosaic_crystal.tau)
            if bragg is None:
                continue
            _, p = acceptance_probability(ki, abs(bragg[1]), 0.8, mosaic_crystal)
            assert 0.0 <= p <= 1.0


class TestConeSampling:
    """测试 Debye-Scherrer 锥抽样"""

    def test_nominal_point_is_q0(self):
        """测试锥上 phi=0 的点为名义散射矢量"""
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        c, a, b = debye_scherrer_basis(ki, TAU_PG002, theta)
        np.testing.assert_allclose(c + a, [TAU_PG002, 0.0, 0.0], atol=1e-12)

    def test_cone_is_elastic(self):
        """测试锥上任意点满足 |ki + q| = |ki|"""
        ki = bragg_wavevector(2.0, TAU_PG002) + np.array([0.01, 0.02, -0.03])
        theta = 0.6
        c, a, b = debye_scherrer_basis(ki, TAU_PG002, theta)
        for phi in np.linspace(-math.pi, math.pi, 13):
            q = c + a * math.cos(phi) + b * math.sin(phi)
            assert np.linalg.norm(ki + q) == pytest.approx(np.linalg.norm(ki))

    def test_perfect_crystal_sample(self, perfect_crystal):
        """测试零镶嵌时直接取名义反射"""
        rng = np.random.default_rng(0)
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        q, p = sample_scattering_vector(ki, TAU_PG002, theta, perfect_crystal, rng)
        assert p == 1.0
        np.testing.assert_allclose(q, [TAU_PG002, 0.0, 0.0], atol=1e-12)

    def test_corrected_probability_bounds(self, mosaic_crystal):
        """测试重要性修正后的概率位于 [0, 1]"""
        rng = np.random.default_rng(5)
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        for _ in range(300):
            _, p = sample_scattering_vector(ki, TAU_PG002, theta, mosaic_crystal, rng)
            assert 0.0 <= p <= 1.0


def weighted_cone_spread(crystal, n_samples=3000, seed=21):
    """精确 Bragg 入射下抽样，返回平均修正概率与加权 q_y/q_x 的 RMS"""
    rng = np.random.default_rng(seed)
    ki = bragg_wavevector(2.0, TAU_PG002)
    theta = math.asin(TAU_PG002 / 4.0)
    tilts = np.empty(n_samples)
    weights = np.empty(n_samples)
    for i in range(n_samples):
        q, p = sample_scattering_vector(ki, TAU_PG002, theta, crystal, rng)
        tilts[i] = q[1] / q[0]
        weights[i] = p
    spread = math.sqrt(np.average(tilts ** 2, weights=weights))
    return weights.mean(), spread


class TestConeStatistics:
    """测试锥抽样的统计性质：修正权重无偏，出射分布跟随镶嵌宽度"""

    def test_matched_width_kept(self, mosaic_crystal):
        """测试与镶嵌宽度匹配的初始抽样宽度不被缩小"""
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        c, a, b = debye_scherrer_basis(ki, TAU_PG002, theta)
        width = adapt_sampling_width(c, a, b, TAU_PG002, theta, mosaic_crystal)
        assert width == pytest.approx(mosaic_crystal.rms_max / math.cos(theta))

    def test_oversized_width_shrinks(self):
        """测试初始宽度远大于锥方向镶嵌宽度时缩小到其 1 到 1.5 倍"""
        crystal = CrystalProperties.from_parameters(mosaic_h=120.0, mosaic_v=5.0, d_spacing=3.355)
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        c, a, b = debye_scherrer_basis(ki, TAU_PG002, theta)
        width = adapt_sampling_width(c, a, b, TAU_PG002, theta, crystal)
        projected = crystal.rms_z / math.cos(theta)
        assert projected <= width <= 1.51 * projected

    def test_isotropic_mosaic(self, mosaic_crystal):
        """测试各向同性镶嵌：平均修正概率约为 1，出射倾角 RMS 等于 rms_z"""
        mean_weight, spread = weighted_cone_spread(mosaic_crystal)
        assert mean_weight == pytest.approx(1.0, abs=0.02)
        assert spread == pytest.approx(mosaic_crystal.rms_z, rel=0.05)

    def test_anisotropic_mosaic(self):
        """测试各向异性镶嵌：锥方向的分布跟随较宽的 rms_z"""
        crystal = CrystalProperties.from_parameters(mosaic_h=5.0, mosaic_v=120.0, d_spacing=3.355)
        mean_weight, spread = weighted_cone_spread(crystal)
        assert mean_weight == pytest.approx(1.0, abs=0.03)
        assert spread == pytest.approx(crystal.rms_z, rel=0.08)


class TestCrystalInteraction:
    """测试完整的晶片相互作用"""

    def test_energy_conservation(self, mosaic_crystal):
        """测试散射后波矢模长守恒"""
        rng = np.random.default_rng(11)
        n_scattered = 0
        for _ in range(500):
            ki = bragg_wavevector(2.0, TAU_PG002) + rng.normal(scale=0.005, size=3)
            outcome, kf, factor = crystal_interaction(ki, mosaic_crystal, rng)
            if outcome is Outcome.SCATTERED:
                n_scattered += 1
                assert np.linalg.norm(kf) == pytest.approx(np.linalg.norm(ki), rel=1e-10)
                assert 0.0 < factor <= 1.0
        assert n_scattered > 0

    def test_bragg_consistency(self, perfect_crystal):
        """测试零镶嵌时入射与出射夹角的一半等于 Bragg 角"""
        rng = np.random.default_rng(2)
        ki = bragg_wavevector(2.0, TAU_PG002)
        theta = math.asin(TAU_PG002 / 4.0)
        for _ in range(20):
            outcome, kf, _ = crystal_interaction(ki, perfect_crystal, rng)
            if outcome is Outcome.SCATTERED:
                cos_2theta = np.dot(ki, kf) / (np.linalg.norm(ki) * np.linalg.norm(kf))
                assert 0.5 * math.acos(min(1.0, cos_2theta)) == pytest.approx(theta, abs=1e-9)
                return
        pytest.fail("perfect crystal at the Bragg condition never scattered")

    def test_zero_reflectivity_never_scatters(self):
        """测试 r0=0 时只透射或吸收"""
        crystal = CrystalProperties.from_parameters(mosaic=30.0, d_spacing=3.355, r0=0.0, t0=0.7)
        rng = np.random.default_rng(4)
        for _ in range(300):
            ki = bragg_wavevector(2.0, TAU_PG002) + rng.normal(scale=0.01, size=3)
            outcome, kf, factor = crystal_interaction(ki, crystal, rng)
            assert outcome is Outcome.TRANSMITTED
            np.testing.assert_array_equal(kf, ki)
            assert factor == 0.7

    def test_zero_transmission_absorbs(self):
        """测试 r0=0 且 t0=0 时全部吸收"""
        crystal = CrystalProperties(tau=TAU_PG002, r0=0.0, t0=0.0)
        rng = np.random.default_rng(4)
        outcome, _, factor = crystal_interaction(bragg_wavevector(2.0, TAU_PG002), crystal, rng)
        assert outcome is Outcome.ABSORBED
        assert factor == 0.0

    def test_transmission_clamped(self):
        """测试透射率大于 1 时权重因子截断"""
        crystal = CrystalProperties(tau=TAU_PG002, r0=0.0, t0=1.5)
        rng = np.random.default_rng(4)
        _, _, factor = crystal_interaction(bragg_wavevector(2.0, TAU_PG002), crystal, rng)
        assert factor == 0.999

    def test_reflectivity_table_replaces_constant(self, mosaic_crystal):
        """测试反射率表替代常数反射率"""
        table = LookupTable(k=np.array([0.1, 10.0]), values=np.array([0.0, 0.0]))
        rng = np.random.default_rng(8)
        ki = bragg_wavevector(2.0, TAU_PG002)
        for _ in range(100):
            outcome, _, _ = crystal_interaction(ki, mosaic_crystal, rng, reflectivity_table=table)
            assert outcome is Outcome.TRANSMITTED

    def test_transmission_table(self):
        """测试透射率表"""
        crystal = CrystalProperties(tau=TAU_PG002, r0=0.0, t0=1.0)
        table = LookupTable(k=np.array([1.0, 3.0]), values=np.array([0.2, 0.6]))
        rng = np.random.default_rng(8)
        _, _, factor = crystal_interaction(bragg_wavevector(2.0, TAU_PG002), crystal, rng,
                                           transmission_table=table)
        assert factor == pytest.approx(0.4)

    def test_inputs_not_mutated(self, mosaic_crystal):
        """测试输入波矢不被修改"""
        rng = np.random.default_rng(9)
        ki = bragg_wavevector(2.0, TAU_PG002)
        original = ki.copy()
        for _ in range(50):
            crystal_interaction(ki, mosaic_crystal, rng)
        np.testing.assert_array_equal(ki, original)
