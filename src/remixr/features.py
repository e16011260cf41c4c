"""Builtin feature descriptors."""

from __future__ import annotations

from .exceptions import CompositionError
from .models import FeatureDescriptor, HostAccess, Manifest

POPUP_JS = "popup.js"
BACKGROUND_JS = "background.js"

RUN_ACTION_COMMAND = "run-action"


def _add_run_action_command(manifest: Manifest) -> Manifest:
    """Declare the keyboard shortcut handled by the commands fragment."""
    commands = manifest.section("commands")
    if commands is None:
        msg = "Manifest 'commands' must be an object to declare a shortcut"
        raise CompositionError(msg, details={"field": "commands"}, step="mutate")
    if RUN_ACTION_COMMAND in commands:
        return manifest
    commands[RUN_ACTION_COMMAND] = {
        "suggested_key": {"default": "Ctrl+Shift+Y", "mac": "Command+Shift+Y"},
        "description": "Run the extension action",
    }
    return manifest.updated(commands=commands)


STORAGE = FeatureDescriptor(
    id="storage",
    title="Storage",
    description="Save and load values with chrome.storage.local",
    grants=frozenset({"storage"}),
    target_file=POPUP_JS,
    marker="function saveData(",
    code_fragment="""\
// Persist values with chrome.storage.local
function saveData(key, value) {
  return chrome.storage.local.set({ [key]: value });
}

async function loadData(key) {
  const result = await chrome.storage.local.get([key]);
  return result[key];
}
""",
)

CONTEXT_MENU = FeatureDescriptor(
    id="contextMenu",
    title="Context menu",
    description="Register a right-click menu entry",
    grants=frozenset({"contextMenus"}),
    requires_background=True,
    target_file=BACKGROUND_JS,
    marker="chrome.contextMenus.create(",
    code_fragment="""\
chrome.runtime.onInstalled.addListener(() => {
  chrome.contextMenus.create({
    id: 'remixr-context-action',
    title: 'Run extension action',
    contexts: ['page', 'selection', 'link']
  });
});

chrome.contextMenus.onClicked.addListener((info, tab) => {
  console.log('Context menu clicked:', info.menuItemId, tab && tab.id);
});
""",
)

NOTIFICATIONS = FeatureDescriptor(
    id="notifications",
    title="Notifications",
    description="Show system notifications from the service worker",
    grants=frozenset({"notifications"}),
    requires_background=True,
    target_file=BACKGROUND_JS,
    marker="function showNotification(",
    code_fragment="""\
function showNotification(title, message) {
  chrome.notifications.create({
    type: 'basic',
    iconUrl: 'icons/icon128.png',
    title,
    message
  });
}
""",
)

ALARMS = FeatureDescriptor(
    id="alarms",
    title="Alarms",
    description="Run a periodic task every minute",
    grants=frozenset({"alarms"}),
    requires_background=True,
    target_file=BACKGROUND_JS,
    marker="chrome.alarms.onAlarm.addListener(",
    code_fragment="""\
chrome.alarms.create('remixr-periodic', { periodInMinutes: 1 });

chrome.alarms.onAlarm.addListener((alarm) => {
  if (alarm.name === 'remixr-periodic') {
    console.log('Periodic task fired at', new Date().toISOString());
  }
});
""",
)

TABS = FeatureDescriptor(
    id="tabs",
    title="Tabs",
    description="Query the current tab",
    grants=frozenset({"tabs"}),
    target_file=POPUP_JS,
    marker="function getCurrentTab(",
    code_fragment="""\
async function getCurrentTab() {
  const [tab] = await chrome.tabs.query({ active: true, currentWindow: true });
  return tab;
}
""",
)

SCRIPTING = FeatureDescriptor(
    id="scripting",
    title="Scripting",
    description="Run a function in the active tab on demand",
    grants=frozenset({"scripting"}),
    host_permission=HostAccess.ACTIVE_TAB,
    target_file=POPUP_JS,
    marker="function runInActiveTab(",
    code_fragment="""\
async function runInActiveTab(func, args = []) {
  const [tab] = await chrome.tabs.query({ active: true, currentWindow: true });
  const results = await chrome.scripting.executeScript({
    target: { tabId: tab.id },
    func,
    args
  });
  return results.map((r) => r.result);
}
""",
)

COMMANDS = FeatureDescriptor(
    id="commands",
    title="Keyboard shortcut",
    description="Handle a keyboard shortcut in the service worker",
    requires_background=True,
    target_file=BACKGROUND_JS,
    marker="chrome.commands.onCommand.addListener(",
    code_fragment=f"""\
chrome.commands.onCommand.addListener((command) => {{
  if (command === '{RUN_ACTION_COMMAND}') {{
    console.log('Keyboard shortcut triggered');
  }}
}});
""",
    manifest_mutator=_add_run_action_command,
)

CLIPBOARD = FeatureDescriptor(
    id="clipboard",
    title="Clipboard",
    description="Copy text to the clipboard",
    grants=frozenset({"clipboardWrite"}),
    target_file=POPUP_JS,
    marker="function copyText(",
    code_fragment="""\
async function copyText(text) {
  await navigator.clipboard.writeText(text);
}
""",
)

DOWNLOADS = FeatureDescriptor(
    id="downloads",
    title="Downloads",
    description="Save generated content as a download",
    grants=frozenset({"downloads"}),
    target_file=POPUP_JS,
    marker="function downloadText(",
    code_fragment="""\
function downloadText(content, filename, mimeType = 'text/plain') {
  const url = 'data:' + mimeType + ';charset=utf-8,' + encodeURIComponent(content);
  return chrome.downloads.download({ url, filename });
}
""",
)

BOOKMARKS = FeatureDescriptor(
    id="bookmarks",
    title="Bookmarks",
    description="Read the bookmark tree",
    grants=frozenset({"bookmarks"}),
    target_file=POPUP_JS,
    marker="function listBookmarks(",
    code_fragment="""\
async function listBookmarks() {
  const tree = await chrome.bookmarks.getTree();
  return tree;
}
""",
)

HISTORY = FeatureDescriptor(
    id="history",
    title="History",
    description="Search recent browsing history",
    grants=frozenset({"history"}),
    target_file=POPUP_JS,
    marker="function recentHistory(",
    code_fragment="""\
async function recentHistory(maxResults = 20) {
  return chrome.history.search({ text: '', maxResults });
}
""",
)

COOKIES = FeatureDescriptor(
    id="cookies",
    title="Cookies",
    description="Read cookies for a URL",
    grants=frozenset({"cookies"}),
    target_file=POPUP_JS,
    marker="function getCookies(",
    code_fragment="""\
async function getCookies(url) {
  return chrome.cookies.getAll({ url });
}
""",
)

BUILTIN_FEATURES = (
    STORAGE,
    CONTEXT_MENU,
    NOTIFICATIONS,
    ALARMS,
    TABS,
    SCRIPTING,
    COMMANDS,
    CLIPBOARD,
    DOWNLOADS,
    BOOKMARKS,
    HISTORY,
    COOKIES,
)
