"""
Create all database tables
Run with: python3 create_tables.py
"""
from sqlalchemy import inspect

from db import Base, Store

if __name__ == "__main__":
    store = Store().init()
    print("🔨 Creating all tables...")
    store.create_all()
    print("✅ All tables created successfully!")

    tables = inspect(store.engine).get_table_names()
    print(f"\n📋 Created tables ({len(tables)}):")
    for table in sorted(tables):
        print(f"   - {table}")
    print(f"   ({len(Base.metadata.tables)} registered models)")
    store.close()
