"""Starter project templates and keyword-driven project generation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from .exceptions import TemplateError
from .models import MANIFEST_FILE, Manifest, Project

DEFAULT_ICONS = {
    "16": "icons/icon16.png",
    "48": "icons/icon48.png",
    "128": "icons/icon128.png",
}

_POPUP_CSS = """\
body {
  width: 300px;
  padding: 16px;
  font-family: sans-serif;
}

h1 {
  font-size: 18px;
  color: #333;
}
"""


def _popup_html(title: str) -> str:
    return f"""\
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{title}</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <h1>{title}</h1>
  <script src="popup.js"></script>
</body>
</html>
"""


@dataclass(frozen=True)
class Template:
    """A named starter project."""

    id: str
    name: str
    manifest: dict[str, Any]
    files: dict[str, str] = field(default_factory=dict)
    keywords: tuple[str, ...] = ()

    def render(self, name: str | None = None, description: str | None = None) -> Project:
        """Build a Project from this template."""
        project_name = name or self.name
        manifest = dict(self.manifest, name=project_name)
        if description:
            manifest["description"] = description

        files = {
            path: content.replace(self.name, project_name) if path.endswith(".html") else content
            for path, content in self.files.items()
        }
        files[MANIFEST_FILE] = json.dumps(manifest, indent=2) + "\n"
        return Project(name=project_name, files=files)


BLANK = Template(
    id="blank",
    name="My Extension",
    manifest={
        "manifest_version": 3,
        "name": "My Extension",
        "version": "1.0.0",
        "description": "A new browser extension",
    },
)

STARTER = Template(
    id="starter",
    name="Starter Extension",
    manifest={
        "manifest_version": 3,
        "name": "Starter Extension",
        "version": "1.0.0",
        "description": "A basic starter extension",
        "permissions": ["activeTab"],
        "action": {"default_popup": "popup.html"},
    },
    files={
        "popup.html": _popup_html("Starter Extension"),
        "popup.js": "// Popup logic\nconsole.log('Popup loaded!');\n",
        "styles.css": _POPUP_CSS,
    },
)

CONTENT_MODIFIER = Template(
    id="content-modifier",
    name="Content Modifier",
    manifest={
        "manifest_version": 3,
        "name": "Content Modifier",
        "version": "1.0.0",
        "description": "Modifies webpage content",
        "permissions": ["activeTab", "scripting"],
        "content_scripts": [{
            "matches": ["<all_urls>"],
            "js": ["content.js"],
            "run_at": "document_idle",
        }],
        "action": {"default_popup": "popup.html"},
    },
    files={
        "content.js": """\
// Content script - runs on all pages
document.querySelectorAll('a').forEach((link) => {
  link.style.backgroundColor = 'yellow';
});
""",
        "popup.html": _popup_html("Content Modifier"),
        "popup.js": "// Popup logic\nconsole.log('Popup loaded!');\n",
        "styles.css": _POPUP_CSS,
    },
    keywords=("highlight", "color", "style"),
)

PRODUCTIVITY = Template(
    id="productivity",
    name="Productivity Timer",
    manifest={
        "manifest_version": 3,
        "name": "Productivity Timer",
        "version": "1.0.0",
        "description": "Track time spent on websites",
        "permissions": ["storage", "tabs"],
        "background": {"service_worker": "background.js"},
        "action": {"default_popup": "popup.html"},
    },
    files={
        "background.js": """\
// Background service worker
let activeTabId = null;
let startTime = null;

chrome.tabs.onActivated.addListener((activeInfo) => {
  saveTimeForCurrentTab();
  activeTabId = activeInfo.tabId;
  startTime = Date.now();
});

function saveTimeForCurrentTab() {
  if (activeTabId && startTime) {
    const timeSpent = Date.now() - startTime;
    chrome.storage.local.get(['timeData'], (result) => {
      const timeData = result.timeData || {};
      timeData[activeTabId] = (timeData[activeTabId] || 0) + timeSpent;
      chrome.storage.local.set({ timeData });
    });
  }
}
""",
        "popup.html": _popup_html("Productivity Timer"),
        "popup.js": """\
chrome.storage.local.get(['timeData'], (result) => {
  const total = Object.values(result.timeData || {}).reduce((a, b) => a + b, 0);
  document.querySelector('h1').textContent += ` (${Math.round(total / 60000)} min)`;
});
""",
        "styles.css": _POPUP_CSS,
    },
    keywords=("timer", "track", "time"),
)

DATA_EXTRACTOR = Template(
    id="data-extractor",
    name="Data Extractor",
    manifest={
        "manifest_version": 3,
        "name": "Data Extractor",
        "version": "1.0.0",
        "description": "Extract data from webpages",
        "permissions": ["activeTab", "scripting"],
        "action": {"default_popup": "popup.html"},
    },
    files={
        "popup.html": """\
<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>Data Extractor</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <h1>Data Extractor</h1>
  <button id="extract-links">Extract All Links</button>
  <button id="extract-images">Extract All Images</button>
  <div id="results"></div>
  <script src="popup.js"></script>
</body>
</html>
""",
        "popup.js": """\
async function extractFromPage(collect) {
  const [tab] = await chrome.tabs.query({ active: true, currentWindow: true });
  const [injection] = await chrome.scripting.executeScript({
    target: { tabId: tab.id },
    func: collect,
  });
  displayResults(injection.result);
}

document.getElementById('extract-links').addEventListener('click', () => {
  extractFromPage(() => Array.from(document.querySelectorAll('a'))
    .map((a) => a.href)
    .filter((href) => href));
});

document.getElementById('extract-images').addEventListener('click', () => {
  extractFromPage(() => Array.from(document.querySelectorAll('img'))
    .map((img) => img.src)
    .filter((src) => src));
});

function displayResults(data) {
  const resultsDiv = document.getElementById('results');
  resultsDiv.replaceChildren();
  for (const item of (data && data.length ? data : ['No results found'])) {
    const row = document.createElement('div');
    row.textContent = item;
    resultsDiv.appendChild(row);
  }
}
""",
        "styles.css": """\
body {
  width: 400px;
  padding: 16px;
  font-family: sans-serif;
}

button {
  width: 100%;
  padding: 10px;
  margin: 5px 0;
}

#results {
  margin-top: 10px;
  max-height: 300px;
  overflow-y: auto;
  word-break: break-all;
}
""",
    },
    keywords=("extract", "scrape", "data"),
)

TEMPLATES: dict[str, Template] = {
    t.id: t for t in (BLANK, STARTER, CONTENT_MODIFIER, PRODUCTIVITY, DATA_EXTRACTOR)
}


def get_template(template_id: str) -> Template:
    """Look up a template by id.

    Raises:
        TemplateError: If no such template exists
    """
    try:
        return TEMPLATES[template_id]
    except KeyError:
        msg = f"Unknown template '{template_id}'"
        raise TemplateError(msg, details={"available": sorted(TEMPLATES)}) from None


def create_project(template_id: str = "blank", name: str | None = None) -> Project:
    """Create a new project from a template."""
    return get_template(template_id).render(name=name)


def extract_name(prompt: str) -> str | None:
    """Derive a title-cased project name from a free-text prompt.

    Takes the text after create/build/make, cut at the first "to" or "that",
    limited to 30 characters.
    """
    match = re.search(
        r"(?:create|build|make)\s+(?:an?\s+)?(?:extension\s+)?(?:that\s+)?(.+)",
        prompt,
        re.IGNORECASE,
    )
    if not match:
        return None

    head = re.split(r"\b(?:to|that)\b", match.group(1))[0].strip()
    name = " ".join(w[:1].upper() + w[1:] for w in head.split(" "))[:30].strip()
    return name or None


def generate_from_prompt(prompt: str, name: str | None = None) -> Project:
    """Pick a template by keyword and name the project after the prompt.

    Templates are tried in order: content modifier, productivity timer, then
    data extractor. An explicit ``name`` wins over the one in the prompt.
    """
    lowered = prompt.lower()
    project_name = name or extract_name(prompt)
    for template in (CONTENT_MODIFIER, PRODUCTIVITY, DATA_EXTRACTOR):
        if any(keyword in lowered for keyword in template.keywords):
            return template.render(name=project_name)

    return BLANK.render(name=project_name, description=prompt[:100])


def webstore_manifest(manifest: Manifest) -> Manifest:
    """Fill the fields a store listing requires when they are missing."""
    defaults: dict[str, Any] = {}
    if not manifest.icons:
        defaults["icons"] = DEFAULT_ICONS
    if not manifest.version:
        defaults["version"] = "1.0.0"
    if not manifest.description:
        defaults["description"] = "Extension description"
    return manifest.updated(**defaults) if defaults else manifest
