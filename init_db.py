import sys
from decimal import Decimal, InvalidOperation

from cash_ledger.database import SessionLocal, engine
# Importamos todo desde cash_ledger.models para registrar las cuatro tablas
from cash_ledger.models import Base
from cash_ledger.services.bank import BankRegisterManager


def init_db(initial_balance: Decimal = Decimal("0")):
    print("--- Creando Tablas ---")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        # Sin Caja Banco no se puede abrir ninguna Caja Chica
        manager = BankRegisterManager(db)
        if manager.exists_any():
            print("Caja banco ya existe.")
            return
        register = manager.open_or_update(
            initial_balance=initial_balance,
            note="Caja banco inicial",
        )
        print(f"✅ Caja banco {register.id} creada con saldo {register.current_balance}.")
    finally:
        db.close()


if __name__ == "__main__":
    balance = Decimal("0")
    if len(sys.argv) > 1:
        try:
            balance = Decimal(sys.argv[1])
        except InvalidOperation:
            sys.exit(f"Saldo inicial inválido: {sys.argv[1]}")
    init_db(balance)
