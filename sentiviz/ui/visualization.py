"""Sentiment-driven particle flow field rendered as terminal text.

Purely cosmetic: the field reads the latest score every frame and never
writes back to conversation state.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from rich.style import Style
from rich.text import Text

NUM_PARTICLES = 1200
MAX_AGE = 5000
DRIFT = 0.15
# Low to high density glyphs
GLYPHS = " .:-=+*#"


@dataclass(frozen=True)
class VisualParams:
    """Per-frame animation parameters derived from a sentiment score."""
    speed: float
    noise_scale: float
    noise_step: float
    color: Tuple[int, int, int]


def lerp(start: float, stop: float, amount: float) -> float:
    return start + (stop - start) * amount


def display_score(score: float) -> float:
    """Clamp any score into [-1, 1] for display; non-finite scores read as 0."""
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def visual_params(score: float) -> VisualParams:
    """Map a sentiment score to motion and colour.

    Magnitude drives speed, flow turbulence and drift; the sign picks the hue:
    green above 0.25, red below -0.25 and blue around neutral.
    """
    score = display_score(score)
    magnitude = abs(score)

    speed = lerp(0.6, 3.0, magnitude)
    noise_scale = lerp(0.002, 0.007, magnitude)
    noise_step = 0.003 + magnitude * 0.012

    if score > 0.25:
        intensity = 60 + ((score - 0.25) / 0.75) * 180
        color = (30, int(intensity), 30)
    elif score < -0.25:
        intensity = 60 + ((-score - 0.25) / 0.75) * 180
        color = (int(intensity), 30, 30)
    else:
        blue_intensity = 200 * (1 - magnitude / 0.25)
        color = (30, 40, int(80 + blue_intensity * 0.6))

    return VisualParams(speed=speed, noise_scale=noise_scale, noise_step=noise_step, color=color)


def flow_noise(x: np.ndarray, y: np.ndarray, z: float) -> np.ndarray:
    """Smooth pseudo-noise in [0, 1] over the plane, drifting with z."""
    n = (np.sin(x * 1.7 + z * 2.1)
         + np.sin(y * 2.3 - z * 1.3)
         + np.sin((x + y) * 0.9 + z * 0.7)
         + np.cos((x - y) * 1.1 - z * 1.7))
    return (n + 4.0) / 8.0


class ParticleField:
    """Particles advected through a noise flow field on a width x height canvas."""

    def __init__(self, width: int = 400, height: int = 200,
                 num_particles: int = NUM_PARTICLES, seed: Optional[int] = None):
        self.width = width
        self.height = height
        self.rng = np.random.default_rng(seed)
        self.positions = self.rng.random((num_particles, 2)) * (width, height)
        self.ages = np.zeros(num_particles, dtype=np.int64)
        self.noise_z = 0.0
        self.frame = 0

    def step(self, params: VisualParams) -> None:
        """Advance every particle one frame."""
        x = self.positions[:, 0]
        y = self.positions[:, 1]
        n = flow_noise(x * params.noise_scale * 100, y * params.noise_scale * 100, self.noise_z)
        angle = n * 2 * math.pi * 4.0

        velocity = np.stack([np.cos(angle), np.sin(angle)], axis=1) * params.speed
        velocity += self.rng.uniform(-DRIFT, DRIFT, velocity.shape)

        self.positions += velocity
        self.ages += 1

        # Respawn old particles to avoid permanent clustering
        old = self.ages > MAX_AGE
        if old.any():
            self.positions[old] = self.rng.random((int(old.sum()), 2)) * (self.width, self.height)
            self.ages[old] = 0

        # Wrap around the edges
        self.positions[:, 0] %= self.width
        self.positions[:, 1] %= self.height

        self.noise_z += params.noise_step
        self.frame += 1

    def density(self, columns: int, rows: int) -> np.ndarray:
        """Particle counts per character cell, shape (rows, columns)."""
        cols = np.clip((self.positions[:, 0] / self.width * columns).astype(int), 0, columns - 1)
        rws = np.clip((self.positions[:, 1] / self.height * rows).astype(int), 0, rows - 1)
        grid = np.zeros((rows, columns), dtype=np.int64)
        np.add.at(grid, (rws, cols), 1)
        return grid

    def render(self, columns: int, rows: int, params: VisualParams) -> Text:
        """Render the field as glyphs coloured by the current sentiment."""
        columns = max(1, columns)
        rows = max(1, rows)
        grid = self.density(columns, rows)
        peak = max(1, int(grid.max()))
        levels = np.minimum((grid * (len(GLYPHS) - 1) + peak - 1) // peak, len(GLYPHS) - 1)

        style = Style(color=f"rgb({params.color[0]},{params.color[1]},{params.color[2]})")
        lines = ["".join(GLYPHS[level] for level in row) for row in levels]
        return Text("\n".join(lines), style=style, no_wrap=True, overflow="crop")
