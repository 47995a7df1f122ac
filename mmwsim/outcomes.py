import random


class PacketOutcomeSampler:
    """Independent Bernoulli draw per user: the packet gets through iff draw >= PER."""

    def __init__(self, seed=None):
        self.rng = random.Random(seed)

    def draw(self, users, per) -> tuple:
        """Return the users whose transmission succeeds, in the given order."""
        return tuple(u for u, p in zip(users, per) if self.rng.random() >= p)
