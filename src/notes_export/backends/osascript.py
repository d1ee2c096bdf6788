"""Automation bridge: talk to Notes.app through `osascript`.

Reads use JXA scripts that print JSON. Note listings use AppleScript and stream
one `log` line per note on stderr, so callers can show progress while a large
account is enumerated. Writes use AppleScript.

The bridge is a single external process channel; callers must not use it from
several threads at once.
"""

import json
import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger

from notes_export.config import OSASCRIPT_BIN
from notes_export.errors import BackendError, FolderLookupError
from notes_export.models.note import Account, Folder, Note, NoteSummary

_JXA_TEMPLATE = """
const Notes = Application("Notes");
Notes.includeStandardAdditions = true;

const input = __PAYLOAD__;

function folderPathFor(folder, accountId) {
  const parts = [folder.name()];
  const seen = {};
  let current = folder;
  while (true) {
    const c = current.container();
    if (!c) break;
    let cid = null;
    try { cid = c.id(); } catch (e) { break; }
    if (cid === accountId) break;
    if (seen[cid]) break;
    seen[cid] = true;
    parts.push(c.name());
    current = c;
  }
  parts.reverse();
  return parts;
}

function findAccount(accountName) {
  const acct = Notes.accounts().find(a => a.name() === accountName);
  if (!acct) throw new Error("account not found: " + accountName);
  return acct;
}

function listFolders(accountName) {
  const acct = findAccount(accountName);
  const accountId = acct.id();
  const byId = {};
  acct.folders().forEach(f => {
    const id = f.id();
    const path = folderPathFor(f, accountId);
    const existing = byId[id];
    if (!existing || path.length < existing.path.length) {
      byId[id] = { id: id, name: f.name(), account: accountName, path: path };
    }
  });
  return Object.values(byId);
}

function resolveFolderIds(accountName, wantParts) {
  const acct = findAccount(accountName);
  const accountId = acct.id();
  const want = wantParts.join(" > ");
  const last = wantParts[wantParts.length - 1];
  return acct.folders()
    .filter(f => f.name() === last)
    .filter(f => folderPathFor(f, accountId).join(" > ") === want)
    .map(f => f.id());
}

function main() {
  switch (__ACTION__) {
    case "accounts.list":
      return Notes.accounts().map(a => ({ name: a.name() }));
    case "folders.list":
      return listFolders(input.account);
    case "folders.resolve":
      return { matches: resolveFolderIds(input.account, input.path) };
    case "notes.get": {
      const n = Notes.notes.byId(input.id);
      return {
        id: n.id(),
        title: n.name(),
        folder_id: n.container().id(),
        created_at: n.creationDate().toISOString(),
        modified_at: n.modificationDate().toISOString(),
        body_html: String(n.body()),
      };
    }
    default:
      throw new Error("unknown action: " + __ACTION__);
  }
}

console.log(JSON.stringify(main()));
"""

_REPLACE_CHARS_HANDLER = """
on replace_chars(s, find, repl)
  set AppleScript's text item delimiters to find
  set parts to every text item of s
  set AppleScript's text item delimiters to repl
  set s2 to parts as text
  set AppleScript's text item delimiters to ""
  return s2
end replace_chars
"""

_LOG_NOTES_OF_F = """
      set folderId to (id of f as text)
      set ns to every note of f
      repeat with n in ns
        set t to (name of n as text)
        set t to my replace_chars(t, tab, " ")
        set t to my replace_chars(t, return, " ")
        log (id of n as text) & tab & t & tab & folderId
      end repeat
"""


def applescript_str(value: str) -> str:
    """Quote a string as an AppleScript literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_jxa(action: str, payload: dict[str, Any]) -> str:
    return _JXA_TEMPLATE.replace("__PAYLOAD__", json.dumps(payload)).replace(
        "__ACTION__", json.dumps(action)
    )


def extract_log_payload(line: str) -> str:
    """Strip the prefix osascript puts in front of `log` output, if any."""
    idx = line.find("log:")
    if idx != -1:
        return line[idx + len("log:") :].strip()
    return line.strip()


def parse_note_summaries_tsv(text: str) -> list[NoteSummary]:
    """Parse `id<TAB>title<TAB>folder_id` lines."""
    out: list[NoteSummary] = []
    for lnum, line in enumerate(text.splitlines(), start=1):
        line = line.rstrip()
        if not line:
            continue
        parts = line.split("\t", 2)
        if len(parts) < 3:
            missing = ("title", "folder id")[len(parts) - 1]
            msg = f"invalid notes TSV on line {lnum}: missing {missing}"
            raise ValueError(msg)
        out.append(NoteSummary(id=parts[0], title=parts[1], folder_id=parts[2]))
    return out


class OsascriptBackend:
    """NotesBackend that drives Notes.app with osascript."""

    def __init__(self, *, osascript_bin: str = OSASCRIPT_BIN, debug_scripts: bool = False) -> None:
        self.osascript_bin = osascript_bin
        self.debug_scripts = debug_scripts

    def _run(self, args: list[str], script: str) -> str:
        if self.debug_scripts:
            logger.debug("running osascript {!r} with stdin:\n{}\n---", args, script)
        try:
            proc = subprocess.run(
                [self.osascript_bin, *args],
                input=script,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            msg = "failed to spawn osascript (are you on macOS?)"
            raise BackendError(msg) from e
        if proc.returncode != 0:
            msg = f"osascript failed (exit {proc.returncode}): {proc.stderr.strip()}"
            raise BackendError(msg)
        # Some environments print results on stderr even on success.
        if not proc.stdout and proc.stderr:
            return proc.stderr
        return proc.stdout

    def _run_applescript(self, script: str) -> str:
        return self._run(["-"], script)

    def _jxa_json(self, action: str, payload: dict[str, Any]) -> Any:
        out = self._run(["-l", "JavaScript", "-"], build_jxa(action, payload)).strip()
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            msg = f"failed to parse osascript JSON output: {out[:200]}"
            raise BackendError(msg) from e

    def _run_streaming(self, script: str, on_line: Callable[[str], None]) -> None:
        if self.debug_scripts:
            logger.debug("streaming osascript with stdin:\n{}\n---", script)
        try:
            proc = subprocess.Popen(
                [self.osascript_bin, "-"],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            msg = "failed to spawn osascript (are you on macOS?)"
            raise BackendError(msg) from e

        assert proc.stdin is not None and proc.stdout is not None and proc.stderr is not None
        proc.stdin.write(script)
        proc.stdin.close()

        # Drain stdout on the side so a chatty script cannot block on a full pipe.
        stdout_chunks: list[str] = []
        reader = threading.Thread(target=lambda: stdout_chunks.append(proc.stdout.read()))
        reader.start()

        stderr_lines: list[str] = []
        for raw in proc.stderr:
            line = raw.rstrip("\r\n")
            stderr_lines.append(line)
            on_line(line)

        status = proc.wait()
        reader.join()
        if status != 0:
            details = "\n".join(stderr_lines).strip()
            stdout_text = "".join(stdout_chunks).strip()
            if stdout_text:
                details += "\n" + stdout_text
            msg = f"osascript failed (exit {status}): {details}"
            raise BackendError(msg)

    def resolve_folder_id(self, account: str, folder_path: Sequence[str]) -> str:
        out = self._jxa_json("folders.resolve", {"account": account, "path": list(folder_path)})
        matches: list[str] = out["matches"]
        want = " > ".join(folder_path)
        if not matches:
            msg = f"folder not found: {want}"
            raise FolderLookupError(msg)
        if len(matches) > 1:
            msg = f"folder path is ambiguous ({len(matches)} matches): {want}"
            raise FolderLookupError(msg)
        return matches[0]

    def list_accounts(self) -> list[Account]:
        return [Account.from_dict(a) for a in self._jxa_json("accounts.list", {})]

    def list_folders(self, account: str) -> list[Folder]:
        return [Folder.from_dict(f) for f in self._jxa_json("folders.list", {"account": account})]

    def list_notes(self, account: str) -> list[NoteSummary]:
        out: list[NoteSummary] = []
        self.stream_note_summaries(account, None, out.append)
        return out

    def list_notes_in_folder(self, account: str, folder_path: Sequence[str]) -> list[NoteSummary]:
        out: list[NoteSummary] = []
        self.stream_note_summaries(account, folder_path, out.append)
        return out

    def stream_note_summaries(
        self,
        account: str,
        folder_path: Sequence[str] | None,
        on_note: Callable[[NoteSummary], None],
    ) -> None:
        if folder_path is not None:
            folder_id = self.resolve_folder_id(account, folder_path)
            body = f"""
tell application "Notes"
  set f to folder id {applescript_str(folder_id)}
{_LOG_NOTES_OF_F}
  return "OK"
end tell
"""
        else:
            body = f"""
tell application "Notes"
  tell account {applescript_str(account)}
    repeat with f in folders
{_LOG_NOTES_OF_F}
    end repeat
    return "OK"
  end tell
end tell
"""
        seen_ids: set[str] = set()

        def on_line(line: str) -> None:
            payload = extract_log_payload(line)
            if "\t" not in payload:
                return
            try:
                parsed = parse_note_summaries_tsv(payload)
            except ValueError:
                logger.debug("Ignoring malformed osascript log line: {!r}", payload)
                return
            if parsed and parsed[0].id not in seen_ids:
                seen_ids.add(parsed[0].id)
                on_note(parsed[0])

        self._run_streaming(_REPLACE_CHARS_HANDLER + body, on_line)

    def get_note(self, note_id: str) -> Note:
        data = self._jxa_json("notes.get", {"id": note_id})
        try:
            return Note.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            msg = f"unexpected notes.get output for {note_id}"
            raise BackendError(msg) from e

    def create_note_html(
        self, account: str, folder_path: Sequence[str], title: str, body_html: str
    ) -> str:
        folder_id = self.resolve_folder_id(account, folder_path)
        script = f"""
tell application "Notes"
  set targetFolder to folder id {applescript_str(folder_id)}
  set n to make new note at targetFolder with properties {{name:{applescript_str(title)}, body:{applescript_str(body_html)}}}
  return id of n as text
end tell
"""
        return self._run_applescript(script).strip()

    def set_note_title(self, note_id: str, title: str) -> None:
        self._run_applescript(
            f"""
tell application "Notes"
  set n to note id {applescript_str(note_id)}
  set name of n to {applescript_str(title)}
end tell
"""
        )

    def set_note_body_html(self, note_id: str, body_html: str) -> None:
        self._run_applescript(
            f"""
tell application "Notes"
  set n to note id {applescript_str(note_id)}
  set body of n to {applescript_str(body_html)}
end tell
"""
        )

    def append_note_body_html(self, note_id: str, body_html: str) -> None:
        self._run_applescript(
            f"""
tell application "Notes"
  set n to note id {applescript_str(note_id)}
  set body of n to (body of n as text) & {applescript_str(body_html)}
end tell
"""
        )

    def delete_note(self, note_id: str) -> None:
        self._run_applescript(
            f"""
tell application "Notes"
  delete note id {applescript_str(note_id)}
end tell
"""
        )

    def move_note(self, note_id: str, account: str, folder_path: Sequence[str]) -> None:
        folder_id = self.resolve_folder_id(account, folder_path)
        self._run_applescript(
            f"""
tell application "Notes"
  move note id {applescript_str(note_id)} to folder id {applescript_str(folder_id)}
end tell
"""
        )

    def create_folder(self, account: str, parent_path: Sequence[str], name: str) -> str:
        parent_id = self.resolve_folder_id(account, parent_path)
        script = f"""
tell application "Notes"
  set parentFolder to folder id {applescript_str(parent_id)}
  set f to make new folder at parentFolder with properties {{name:{applescript_str(name)}}}
  return id of f as text
end tell
"""
        return self._run_applescript(script).strip()

    def rename_folder(self, account: str, folder_path: Sequence[str], name: str) -> None:
        folder_id = self.resolve_folder_id(account, folder_path)
        self._run_applescript(
            f"""
tell application "Notes"
  set name of folder id {applescript_str(folder_id)} to {applescript_str(name)}
end tell
"""
        )

    def delete_folder(self, account: str, folder_path: Sequence[str]) -> None:
        folder_id = self.resolve_folder_id(account, folder_path)
        self._run_applescript(
            f"""
tell application "Notes"
  delete folder id {applescript_str(folder_id)}
end tell
"""
        )
