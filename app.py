# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db alinhadores.db
  python app.py caso criar --id c1 --superior 24 --inferior 20 --inicio 2024-01-01
  python app.py os criar --caso c1 --placa 1 --arcada ambos --qtd-superior 3 --qtd-inferior 3
  python app.py os mover <id> em_producao
  python app.py rel alertas
"""

from alinhadores.adapters.cli import main

if __name__ == "__main__":
    main()
