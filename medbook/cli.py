"""
Interactive CLI for MedBook administrators.
Bootstrap admin/doctor accounts and inspect the role permission table.
"""

from medbook.database import init_engine, create_schema
from medbook.models import Role
from medbook.permissions import DEFAULT_POLICY
from medbook.store import create_user
from medbook.validation import validate_registration

COMMANDS = {"admin", "doctor", "check", "roles", "quit", "exit"}


def _ask(prompt: str) -> str:
    return input(prompt).strip()


def create_account(engine, role: Role) -> bool:
    """Prompt for account details, validate them and create the user."""
    data = {
        "email": _ask("Email: "),
        "password": _ask("Senha: "),
        "full_name": _ask("Nome completo: "),
        "phone": _ask("Telefone (opcional): "),
        "user_type": role.value,
    }
    if role == Role.DOCTOR:
        data["specialty"] = _ask("Especialidade: ")
        data["crm"] = _ask("CRM (ex. 123456/SP): ")

    errors = validate_registration(data)
    if errors:
        print("\n[ERROR] Invalid input:")
        for err in errors:
            print(f"  - {err.field}: {err.message}")
        return False

    try:
        profile = create_user(
            engine,
            email=data["email"],
            password=data["password"],
            full_name=data["full_name"],
            role=role,
            phone=data["phone"] or None,
            specialty=data.get("specialty"),
            crm=data.get("crm"),
        )
    except ValueError as e:
        print("\n[ERROR] Could not create account.")
        print("Details:", e)
        return False

    print(f"\n[ok] Created {role.value} #{profile.id} <{profile.email}>")
    return True


def check_permission(policy=DEFAULT_POLICY) -> bool:
    """Prompt for role/resource/action and print the decision."""
    role = _ask("Role: ")
    resource = _ask("Resource: ")
    action = _ask("Action: ")
    allowed = policy.has_permission(role, resource, action)
    print(f"\n[policy] {role} {action} {resource}: {'ALLOWED' if allowed else 'DENIED'}")
    return allowed


def print_roles(policy=DEFAULT_POLICY) -> None:
    for role in Role:
        perms = sorted(
            f"{p.resource.value}:{p.action.value}" for p in policy.permissions_for(role)
        )
        print(f"\n[{role.value}]")
        print("  " + (", ".join(perms) if perms else "(no permissions)"))


def main(engine=None):
    print("=== MedBook: administration console ===\n")

    if engine is None:
        engine = init_engine()
    create_schema(engine)

    while True:
        try:
            cmd = _ask("\nCommand [admin | doctor | check | roles | quit]: ").lower()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not cmd:
            continue
        if cmd in {"quit", "exit"}:
            print("Goodbye.")
            break
        if cmd not in COMMANDS:
            print(f"Unknown command '{cmd}'.")
            continue

        try:
            if cmd == "admin":
                create_account(engine, Role.ADMIN)
            elif cmd == "doctor":
                create_account(engine, Role.DOCTOR)
            elif cmd == "check":
                check_permission()
            elif cmd == "roles":
                print_roles()
        except (EOFError, KeyboardInterrupt):
            print("\nCancelled.")


if __name__ == "__main__":
    main()
