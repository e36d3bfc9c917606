"""TierBoard PyQt5 클라이언트."""
