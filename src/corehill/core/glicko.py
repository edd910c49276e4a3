"""Glicko-2 rating updates for a single two-player result.

Reference: Glickman, "Example of the Glicko-2 system"
(http://www.glicko.net/glicko/glicko2.pdf). Each match is treated as its
own rating period with one game, and both sides are updated from the
pre-match values of the other.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

TAU = 0.5
EPSILON = 0.000001
GLICKO2_SCALE = 173.7178

DEFAULT_RATING = 1200
DEFAULT_RD = 350
DEFAULT_VOLATILITY = 0.06

_SCORES = {
    "a_win": (1.0, 0.0),
    "b_win": (0.0, 1.0),
    "tie": (0.5, 0.5),
}


@dataclass(frozen=True)
class RatingTriple:
    rating: float = DEFAULT_RATING
    rd: float = DEFAULT_RD
    volatility: float = DEFAULT_VOLATILITY


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _to_glicko2(rating: float) -> float:
    return (rating - DEFAULT_RATING) / GLICKO2_SCALE


def _from_glicko2(mu: float) -> float:
    return mu * GLICKO2_SCALE + DEFAULT_RATING


def _g(phi: float) -> float:
    """Damps an opponent's impact by their uncertainty."""
    return 1 / math.sqrt(1 + 3 * phi * phi / (math.pi * math.pi))


def _expected(mu: float, mu_j: float, phi_j: float) -> float:
    return 1 / (1 + math.exp(-_g(phi_j) * (mu - mu_j)))


def _new_volatility(sigma: float, phi: float, v: float, delta: float) -> float:
    """Illinois iteration from step 5 of the paper."""
    a = math.log(sigma * sigma)
    phi_sq = phi * phi
    delta_sq = delta * delta

    def f(x: float) -> float:
        ex = math.exp(x)
        denom = phi_sq + v + ex
        return ex * (delta_sq - phi_sq - v - ex) / (2 * denom * denom) - (x - a) / (TAU * TAU)

    big_a = a
    if delta_sq > phi_sq + v:
        big_b = math.log(delta_sq - phi_sq - v)
    else:
        k = 1
        while f(a - k * TAU) < 0:
            k += 1
        big_b = a - k * TAU

    f_a = f(big_a)
    f_b = f(big_b)

    while abs(big_b - big_a) > EPSILON:
        big_c = big_a + (big_a - big_b) * f_a / (f_b - f_a)
        f_c = f(big_c)
        if f_c * f_b <= 0:
            big_a = big_b
            f_a = f_b
        else:
            f_a = f_a / 2
        big_b = big_c
        f_b = f_c

    return math.exp(big_a / 2)


def _update_one(player: RatingTriple, opponent: RatingTriple, score: float) -> RatingTriple:
    mu = _to_glicko2(player.rating)
    phi = player.rd / GLICKO2_SCALE
    sigma = player.volatility

    mu_j = _to_glicko2(opponent.rating)
    phi_j = opponent.rd / GLICKO2_SCALE

    g_j = _g(phi_j)
    e = _expected(mu, mu_j, phi_j)
    v = 1 / (g_j * g_j * e * (1 - e))
    delta = v * g_j * (score - e)

    new_sigma = _new_volatility(sigma, phi, v, delta)

    phi_star = math.sqrt(phi * phi + new_sigma * new_sigma)
    new_phi = 1 / math.sqrt(1 / (phi_star * phi_star) + 1 / v)
    new_mu = mu + new_phi * new_phi * g_j * (score - e)

    return RatingTriple(
        rating=int(_round_half_up(_from_glicko2(new_mu))),
        rd=_round_half_up(new_phi * GLICKO2_SCALE, 2),
        volatility=_round_half_up(new_sigma, 6),
    )


def update_ratings(
    player_a: RatingTriple,
    player_b: RatingTriple,
    outcome: str,
) -> tuple[RatingTriple, RatingTriple]:
    """Return the updated (a, b) ratings for one match.

    ``outcome`` is one of ``"a_win"``, ``"b_win"`` or ``"tie"``.
    """
    try:
        score_a, score_b = _SCORES[outcome]
    except KeyError:
        raise ValueError(
            f"Unknown outcome: {outcome!r}. Expected one of {list(_SCORES)}"
        ) from None

    return (
        _update_one(player_a, player_b, score_a),
        _update_one(player_b, player_a, score_b),
    )
