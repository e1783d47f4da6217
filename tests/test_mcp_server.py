import tempfile
import unittest
from pathlib import Path

from now_working.config import Settings
from now_working.mcp_server import create_mcp


class McpServerTests(unittest.IsolatedAsyncioTestCase):
    async def test_tools_registered(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        mcp = create_mcp(Settings(api_key="k", database_path=Path(tmp.name) / "mcp.db"))
        names = {tool.name for tool in await mcp.list_tools()}
        self.assertEqual(names, {"who_is_working", "monthly_report"})


if __name__ == "__main__":
    unittest.main()
