#!/usr/bin/env python3
import os
import sys

# Add the project root to sys.path so the storefront package resolves when run as a script
sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from storefront.utils import clear_database

def main():
    """
    CLI utility for performing a complete reset of the storefront database.

    Drops all existing tables, recreates the schema and reseeds the
    products table from the catalog.
    """
    print("WARNING: This will permanently delete all orders, order items and order events.")
    confirm = input("Are you sure you want to reset the database? (y/N): ")
    if confirm.lower() == 'y':
        clear_database()
        print("Database reset successfully.")
    else:
        print("Reset cancelled.")

if __name__ == "__main__":
    main()
