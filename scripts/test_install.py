#!/usr/bin/env python3
"""Quick test to verify the installation works."""

import asyncio
import sys
from pathlib import Path

# Allow local source imports without requiring editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


async def main():
    print("Testing RN iOS Simulator MCP Server installation...\n")

    # Test imports
    print("1. Testing imports...")
    try:
        from rn_ios_simulator_mcp import __version__
        from rn_ios_simulator_mcp.config import ServerConfig
        from rn_ios_simulator_mcp.errors import SimulatorMCPError
        from rn_ios_simulator_mcp.server import SimulatorMCPServer, create_app
        print(f"   ✓ All imports successful (version {__version__})")
    except ImportError as e:
        print(f"   ✗ Import error: {e}")
        return 1

    config = ServerConfig.from_env()
    server = SimulatorMCPServer(config)

    # Test simulator enumeration
    print("\n2. Testing simulator enumeration...")
    booted = []
    try:
        devices = await server.manager.list_devices()
        print(f"   ✓ Found {len(devices)} simulators")

        booted = [d for d in devices if d.is_booted]
        if booted:
            print(f"   ✓ {len(booted)} simulator(s) currently booted:")
            for d in booted:
                print(f"     - {d.name} (iOS {d.ios_version})")
                print(f"       UDID: {d.udid}")
        else:
            print("   ⚠ No simulators currently booted")
            print("     Run: xcrun simctl boot <UDID>")
    except SimulatorMCPError as e:
        print(f"   ✗ simctl error: {e}")
        return 1

    # Test tool definitions
    print("\n3. Testing tool definitions...")
    mcp = create_app(server=server)
    tools = await mcp.list_tools()
    print(f"   ✓ {len(tools)} tools defined in {len(server.registry.categories())} categories")

    # Check the automation companion
    print("\n4. Testing idb...")
    if await server.companion.check_installation():
        print("   ✓ idb is installed")
    else:
        print("   ⚠ idb not found")
        print("     Run: brew install idb-companion && pip install fb-idb")

    print("\n" + "=" * 50)
    print("Installation test complete!")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
