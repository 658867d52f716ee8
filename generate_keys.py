#!/usr/bin/env python3
"""
Generate Production Keys Script
Prints a fresh shared secret for API request signing.
"""

import secrets


def generate_signature_key() -> str:
    """Generate API signing secret (48 random bytes, urlsafe)"""
    return secrets.token_urlsafe(48)


def main():
    print("=" * 60)
    print("🔐 API SIGNATURE KEY GENERATOR")
    print("=" * 60)
    print()
    print("⚠️  Give the same value to every signer and every verifier instance")
    print("⚠️  NEVER commit keys to Git!")
    print()
    print("-" * 60)

    print(f"API_SIGNATURE_KEY={generate_signature_key()}")
    print()

    print("-" * 60)
    print()
    print("📋 Paste the key into:")
    print("   - Railway: Settings → Variables")
    print("   - Render: Environment → Environment Variables")
    print("   - AWS/VPS: ~/.env file")
    print()
    print("✅ Clear your terminal history afterwards:")
    print("   PowerShell: Clear-History")
    print("   Bash: history -c")
    print()
    print("=" * 60)


if __name__ == "__main__":
    main()
