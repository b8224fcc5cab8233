#!/usr/bin/env python3
"""
Database management utility for the route admin system.

Usage:
    python manage_db.py init                - Create tables
    python manage_db.py create_admin        - Create an admin account
    python manage_db.py show                - Show all routes
    python manage_db.py show_route <id>     - Show stops and fares of a route
    python manage_db.py delete <id>         - Delete a route
"""

import getpass
import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from routeadmin.database import DatabaseManager
from routeadmin.errors import FareTableMismatch, PersistenceError
from routeadmin.services import RouteFares

CORNER_LABEL = "To \\ From"


def init_database():
    """Create the routes and admins tables."""
    print("Initializing database...")
    DatabaseManager()
    print("Database initialized successfully!")
    show_routes()


def create_admin():
    """Interactive admin account creation."""
    print("\nCREATE ADMIN")
    print("-"*30)

    email = input("Email: ").strip()
    password = getpass.getpass("Password: ")

    if not email or not password:
        print("Email and password are required!")
        return

    db = DatabaseManager()
    if db.get_admin_by_email(email):
        print(f"Admin {email.lower()} already exists!")
        return

    try:
        admin = db.create_admin(email, password)
        print(f"✓ Created admin {admin.email} (id {admin.id})")
    except PersistenceError as e:
        print(f"Error creating admin: {e}")


def show_routes():
    """Display all routes."""
    db = DatabaseManager()
    routes = db.list_routes()

    print("\n" + "="*60)
    print("ROUTES IN DATASTORE")
    print("="*60)
    print(f"{'Id':<6} {'Number':<10} {'Name':<24} {'Bus types'}")
    print("-"*60)

    for route in routes:
        bus_types = ", ".join(t.value for t in route.bus_types)
        print(f"{route.id:<6} {route.number:<10} {route.name:<24} {bus_types}")

    print("-"*60)
    print(f"Total routes: {len(routes)}")
    print("="*60)


def show_route(route_id: int):
    """Display the stops and fare grid of every bus type on a route."""
    db = DatabaseManager()
    try:
        document = db.load_route(route_id)
        if document is None:
            print(f"Route {route_id} not found!")
            return
        route = RouteFares.from_document(document)
    except (FareTableMismatch, ValueError) as e:
        print(f"Route {route_id} has inconsistent data: {e}")
        return
    print(f"\nRoute {route.number}: {route.name}")

    for bus_type in route.bus_types:
        table = route.table(bus_type)
        print("\n" + "-"*40)
        print(f"{bus_type.value} ({table.size} stops)")
        print("-"*40)
        if table.size < 2:
            print("  " + (", ".join(table.stops) or "no stops"))
            continue

        header = "".join(f"{stop[:10]:>12}" for stop in table.stops[:-1])
        print(f"{CORNER_LABEL:<14}{header}")
        for to_stop, fares in table.grid():
            cells = "".join(f"{fares[stop]:>12}" for stop in table.stops[:-1] if stop in fares)
            print(f"{to_stop[:12]:<14}{cells}")


def delete_route(route_id: int):
    """Delete a route after confirmation."""
    confirm = input(f"Are you sure you want to delete route {route_id}? (yes/no): ")

    if confirm.lower() == 'yes':
        db = DatabaseManager()
        if db.delete_route(route_id):
            print(f"Route {route_id} deleted.")
        else:
            print(f"Route {route_id} not found!")
    else:
        print("Delete cancelled.")


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        return

    command = sys.argv[1].lower()

    commands = {
        'init': init_database,
        'create_admin': create_admin,
        'show': show_routes,
    }
    route_commands = {
        'show_route': show_route,
        'delete': delete_route,
    }

    if command in commands:
        commands[command]()
    elif command in route_commands:
        if len(sys.argv) < 3 or not sys.argv[2].isdigit():
            print(f"Usage: python manage_db.py {command} <route id>")
            return
        route_commands[command](int(sys.argv[2]))
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == "__main__":
    main()
