"""AppleScript builders for talking to Zed through System Events.

Each function returns the source of one script; nothing here runs a process.
All interpolated values go through quote() so window titles and paths can
contain quotes or backslashes without breaking out of the string literal.
"""

from typing import Optional

from .constants import ACTIVATED_MARKER


def quote(value: str) -> str:
    """Return value as an AppleScript string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def list_window_titles(app_name: str) -> str:
    """Names of every window of app_name, or "" when it is not running.

    osascript prints the list as "title 1, title 2, ...".
    """
    app = quote(app_name)
    return f'''tell application "System Events"
  if not (exists process {app}) then return ""
  tell process {app} to get name of every window
end tell'''


def raise_window_by_name(app_name: str, name: str, separator: str) -> str:
    """Raise the first window titled name, or "name<separator><file>"."""
    app = quote(app_name)
    exact = quote(name)
    prefix = quote(f"{name}{separator}")
    return f'''tell application "System Events"
  if not (exists process {app}) then return ""
  tell process {app}
    repeat with w in every window
      if name of w is {exact} or name of w starts with {prefix} then
        perform action "AXRaise" of w
        set frontmost to true
        return "{ACTIVATED_MARKER}"
      end if
    end repeat
  end tell
end tell
return ""'''


def raise_untitled_window(app_name: str, untitled_title: str, index: int) -> str:
    """Raise the index-th (1-based) window whose title is untitled_title."""
    app = quote(app_name)
    title = quote(untitled_title)
    return f'''tell application "System Events"
  if not (exists process {app}) then return ""
  tell process {app}
    set untitledCount to 0
    repeat with w in every window
      if name of w is {title} then
        set untitledCount to untitledCount + 1
        if untitledCount is {int(index)} then
          perform action "AXRaise" of w
          set frontmost to true
          return "{ACTIVATED_MARKER}"
        end if
      end if
    end repeat
  end tell
end tell
return ""'''


def frontmost_process_name() -> str:
    return 'tell application "System Events" to get name of first process whose frontmost is true'


def choose_folder(default_path: Optional[str], prompt: str = "Choose a project folder") -> str:
    """Folder picker returning a POSIX path. Cancelling exits with error -128."""
    location = ""
    if default_path:
        location = f" default location (POSIX file {quote(default_path)})"
    return f'''set chosenFolder to choose folder with prompt {quote(prompt)}{location}
return POSIX path of chosenFolder'''
