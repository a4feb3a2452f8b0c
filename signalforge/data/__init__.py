# Synthetic market data for demos and tests
from signalforge.data.synthetic import flat_bars, generate_bars, trending_bars

__all__ = ["flat_bars", "generate_bars", "trending_bars"]
