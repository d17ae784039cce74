# cash_ledger/routers/__init__.py

# Esto expone los módulos para que "from cash_ledger.routers import bank" funcione
from . import petty_cash
from . import bank
