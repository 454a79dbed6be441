"""Tests for the scalar colour functions."""

import random

import pytest

from iGrade.core.filters.algorithms import (
    apply_contrast,
    apply_fade,
    apply_grain,
    apply_saturation,
    apply_temperature,
    apply_tint,
    clamp01,
    float_to_uint8,
    hsl_to_rgb,
    lerp,
    noise2d,
    rgb_to_hsl,
    vignette_factor,
)


def test_clamp01_bounds():
    assert clamp01(-0.5) == 0.0
    assert clamp01(1.5) == 1.0
    assert clamp01(0.25) == 0.25


def test_lerp_does_not_clamp_t():
    assert lerp(0.0, 1.0, 0.5) == pytest.approx(0.5)
    assert lerp(0.2, 0.6, 0.0) == 0.2
    assert lerp(0.0, 1.0, 2.0) == pytest.approx(2.0)


def test_hsl_round_trip_random_triples():
    rng = random.Random(1234)
    for _ in range(1000):
        r, g, b = rng.random(), rng.random(), rng.random()
        rr, gg, bb = hsl_to_rgb(*rgb_to_hsl(r, g, b))
        assert rr == pytest.approx(r, abs=1e-5)
        assert gg == pytest.approx(g, abs=1e-5)
        assert bb == pytest.approx(b, abs=1e-5)


def test_rgb_to_hsl_hue_is_normalised():
    h, s, l = rgb_to_hsl(0.0, 0.0, 1.0)
    assert h == pytest.approx(2.0 / 3.0)
    assert s == pytest.approx(1.0)
    assert l == pytest.approx(0.5)

    h, _, _ = rgb_to_hsl(1.0, 0.0, 0.2)
    assert 0.0 <= h < 1.0


@pytest.mark.parametrize("x", [0.1, 0.3, 0.49])
def test_contrast_darkens_below_mid_grey(x):
    assert apply_contrast(x, 1.5) < x


@pytest.mark.parametrize("x", [0.51, 0.7, 0.9])
def test_contrast_brightens_above_mid_grey(x):
    assert apply_contrast(x, 1.5) > x


def test_contrast_identity_and_flat():
    assert apply_contrast(0.37, 1.0) == pytest.approx(0.37)
    assert apply_contrast(0.9, 0.0) == 0.5


def test_fade_lifts_blacks_and_stays_in_range():
    assert apply_fade(0.0, 0.5) > 0.0
    for amount in (0.1, 0.25, 0.5):
        for x in (0.0, 0.5, 1.0):
            assert 0.0 <= apply_fade(x, amount) <= 1.0


def test_temperature_warms_and_leaves_green():
    r, g, b = apply_temperature(0.5, 0.4, 0.5, 0.2)
    assert r == pytest.approx(0.6)
    assert g == 0.4
    assert b == pytest.approx(0.4)


def test_tint_positive_shifts_towards_magenta():
    r, g, b = apply_tint(0.5, 0.5, 0.5, 0.2)
    assert r > 0.5 and b > 0.5
    assert g < 0.5


def test_saturation_zero_is_grey_at_lightness():
    for r, g, b in [(0.9, 0.1, 0.3), (0.2, 0.7, 0.4), (0.05, 0.05, 0.8)]:
        _, _, lightness = rgb_to_hsl(r, g, b)
        rr, gg, bb = apply_saturation(r, g, b, 0.0)
        assert rr == gg == bb
        assert rr == pytest.approx(lightness)


def test_vignette_centre_and_corner():
    assert vignette_factor(50, 50, 101, 101, 0.8) == pytest.approx(1.0)
    assert vignette_factor(0, 0, 101, 101, 0.8) < 1.0
    assert vignette_factor(0, 0, 101, 101, 0.0) == 1.0
    assert vignette_factor(0, 0, 101, 101, -0.3) == 1.0


def test_vignette_single_pixel_axis():
    assert vignette_factor(0, 0, 1, 1, 0.9) == pytest.approx(1.0)
    assert vignette_factor(0, 0, 1, 11, 0.9) < 1.0


def test_noise_is_deterministic_and_seed_dependent():
    assert noise2d(12, 34, 7) == noise2d(12, 34, 7)
    values = {noise2d(12, 34, seed) for seed in range(200)}
    assert len(values) == 200
    assert all(0.0 <= value < 1.0 for value in values)


def test_grain_zero_is_exact_noop():
    assert apply_grain(0.3, 0.5, 0.7, 0.0, 0.99) == (0.3, 0.5, 0.7)


def test_grain_vanishes_at_black_and_white():
    assert apply_grain(0.0, 0.0, 0.0, 1.0, 0.9) == (0.0, 0.0, 0.0)
    assert apply_grain(1.0, 1.0, 1.0, 1.0, 0.1) == pytest.approx((1.0, 1.0, 1.0))


def test_float_to_uint8_rounds_to_nearest():
    assert float_to_uint8(0.0) == 0
    assert float_to_uint8(1.0) == 255
    assert float_to_uint8(128 / 255.0) == 128
    assert float_to_uint8(1.2) == 255
    assert float_to_uint8(-0.1) == 0
