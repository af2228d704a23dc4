from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column
from ladyluck.core.db import Base

class Wallet(Base):
    """Point-currency balances; owned by the ledger, Lady Luck only reads and debits."""
    __tablename__ = "wallet"
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    echo_points: Mapped[int] = mapped_column(BigInteger, default=0)  # ET
    gold: Mapped[int] = mapped_column(BigInteger, default=0)  # GD
