"""Command line interface for inspecting the loaded configuration"""
from . import settings_conf, DEFAULTS
from pathlib import Path

SECRET_KEYS = ('chain_rpc_password', 'jwt_secret')

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key in SECRET_KEYS and value:
            value = '********'
        print(f"{key}: {value}")

    # Save example configuration file
    examples_dir = Path("examples")
    examples_dir.mkdir(exist_ok=True)

    lines = ["[DEFAULT]"]
    for key, value in DEFAULTS.items():
        lines.append(f"{key} = {value}")

    with open(examples_dir / "settings.conf.example", "w") as f:
        f.write("\n".join(lines) + "\n")

    print(f"\nWrote {examples_dir / 'settings.conf.example'}")

if __name__ == "__main__":
    main()
