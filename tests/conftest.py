"""Literal `git diff` fixtures shared by the test modules."""
from __future__ import annotations

import pytest

# a.rb: line 10 is added at patch position 3; line 11 is context.
SINGLE_FILE_DIFF = "\n".join(
    [
        "diff --git a/a.rb b/a.rb",
        "index 1111111..2222222 100644",
        "--- a/a.rb",
        "+++ b/a.rb",
        "@@ -8,3 +8,4 @@ class A",
        "   def foo",
        "   end",
        "+  bar",
        " end",
    ]
) + "\n"

# Positions (per file, first @@ is 0):
# lib/app.py
#   0 @@ -1,4 +1,5 @@
#   1  import os                 new 1
#   2 +import sys                new 2  (added)
#   3  <blank>                   new 3
#   4  def main():               new 4
#   5 -    return 0
#   6 +    return run()          new 5  (added)
#   7 @@ -20,3 +21,4 @@
#   8      x = 1                 new 21
#   9 --- a/lib/app.py           (removed line "-- a/lib/app.py")
#  10 +++ b/lib/app.py           new 22 (added line "++ b/lib/app.py")
#  11 +    y = 2                 new 23 (added)
#  12      return x              new 24
# README.md (new file)
#   1 +# Title                   new 1
#   2 +text                      new 2
#   3 \ No newline at end of file
MULTI_FILE_DIFF = "\n".join(
    [
        "diff --git a/lib/app.py b/lib/app.py",
        "index 3b18e51..a9c2f4d 100644",
        "--- a/lib/app.py",
        "+++ b/lib/app.py",
        "@@ -1,4 +1,5 @@",
        " import os",
        "+import sys",
        " ",
        " def main():",
        "-    return 0",
        "+    return run()",
        "@@ -20,3 +21,4 @@ def run():",
        "     x = 1",
        "--- a/lib/app.py",
        "+++ b/lib/app.py",
        "+    y = 2",
        "     return x",
        "diff --git a/README.md b/README.md",
        "new file mode 100644",
        "index 0000000..e69de29",
        "--- /dev/null",
        "+++ b/README.md",
        "@@ -0,0 +1,2 @@",
        "+# Title",
        "+text",
        "\\ No newline at end of file",
        "diff --git a/old.txt b/old.txt",
        "deleted file mode 100644",
        "index e69de29..0000000",
        "--- a/old.txt",
        "+++ /dev/null",
        "@@ -1 +0,0 @@",
        "-bye",
        "diff --git a/logo.png b/logo.png",
        "index 1234567..89abcde 100644",
        "Binary files a/logo.png and b/logo.png differ",
    ]
) + "\n"


@pytest.fixture
def single_file_diff_text() -> str:
    return SINGLE_FILE_DIFF


@pytest.fixture
def multi_file_diff_text() -> str:
    return MULTI_FILE_DIFF
