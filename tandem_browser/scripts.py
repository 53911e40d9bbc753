"""
Page-side JavaScript used by both tiers.

Every snippet is a function expression passed to Playwright's
page.evaluate() together with a single JSON-serializable argument,
so selectors and text are never spliced into source code.
"""


VISIBLE_TEXT = """
(maxChars) => {
    if (!document.body) {
        return '';
    }
    return (document.body.innerText || '').slice(0, maxChars);
}
"""

SELECTOR_PRESENT = """
(selector) => !!document.querySelector(selector)
"""

IS_ALIVE = "() => true"

# Returns {clickable, reason}; used before clicking on either tier
CLICKABILITY = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { clickable: false, reason: 'not found' };
    }
    const style = window.getComputedStyle(el);
    if (style.display === 'none') {
        return { clickable: false, reason: 'hidden (display:none)' };
    }
    if (style.visibility === 'hidden') {
        return { clickable: false, reason: 'hidden (visibility:hidden)' };
    }
    const rect = el.getBoundingClientRect();
    if (rect.width === 0 && rect.height === 0 && el.getClientRects().length === 0) {
        return { clickable: false, reason: 'hidden (not rendered)' };
    }
    if (el.disabled || el.getAttribute('aria-disabled') === 'true') {
        return { clickable: false, reason: 'disabled' };
    }
    return { clickable: true };
}
"""

# Synthetic pointer + mouse sequence, then the element's own click()
DISPATCH_CLICK = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    el.scrollIntoView({ block: 'center', inline: 'center' });
    const rect = el.getBoundingClientRect();
    const init = {
        bubbles: true,
        cancelable: true,
        view: window,
        clientX: rect.left + rect.width / 2,
        clientY: rect.top + rect.height / 2,
    };
    el.dispatchEvent(new PointerEvent('pointerdown', init));
    el.dispatchEvent(new MouseEvent('mousedown', init));
    el.dispatchEvent(new PointerEvent('pointerup', init));
    el.dispatchEvent(new MouseEvent('mouseup', init));
    el.click();
    return { success: true };
}
"""

DISPATCH_HOVER = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    const rect = el.getBoundingClientRect();
    const init = {
        bubbles: true,
        clientX: rect.left + rect.width / 2,
        clientY: rect.top + rect.height / 2,
    };
    el.dispatchEvent(new PointerEvent('pointerover', init));
    el.dispatchEvent(new MouseEvent('mouseenter', { ...init, bubbles: false }));
    el.dispatchEvent(new MouseEvent('mouseover', init));
    el.dispatchEvent(new MouseEvent('mousemove', init));
    return { success: true };
}
"""

# Input-capable check shared by both tiers
INPUT_CHECK = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { ok: false, error: 'Element not found: ' + selector };
    }
    if (!('value' in el) && !el.isContentEditable) {
        return { ok: false, error: 'Element is not an input: ' + selector };
    }
    return { ok: true };
}
"""

SET_VALUE = """
({ selector, text }) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    if (!('value' in el) && !el.isContentEditable) {
        return { success: false, error: 'Element is not an input: ' + selector };
    }
    el.focus();
    if (el.isContentEditable && !('value' in el)) {
        el.textContent = text;
    } else {
        el.value = '';
        el.value = text;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return { success: true };
}
"""

EXTRACT = """
({ selector, mode, maxHeadings, maxContent }) => {
    const el = selector ? document.querySelector(selector) : document.body;
    if (!el) {
        return null;
    }
    const textOf = (node) => ((node && (node.innerText || node.textContent)) || '').trim();

    switch (mode) {
        case 'text':
            return { text: el.innerText };

        case 'html':
            return { html: el.innerHTML };

        case 'links': {
            const links = [];
            el.querySelectorAll('a[href]').forEach((a) => {
                links.push({ href: a.href, text: textOf(a) });
            });
            return { links };
        }

        case 'tables': {
            const tables = [];
            el.querySelectorAll('table').forEach((table) => {
                const rows = [];
                table.querySelectorAll('tr').forEach((row) => {
                    const cells = [];
                    row.querySelectorAll('td, th').forEach((cell) => cells.push(textOf(cell)));
                    if (cells.length) rows.push(cells);
                });
                if (rows.length) tables.push(rows);
            });
            return { tables };
        }

        case 'structured':
        default: {
            const main = document.querySelector('main, article, [role="main"], .content') || document.body;
            const meta = document.querySelector('meta[name="description"]');
            return {
                title: document.title,
                url: window.location.href,
                description: (meta && meta.getAttribute('content')) || '',
                headings: Array.from(document.querySelectorAll('h1, h2, h3'))
                    .slice(0, maxHeadings)
                    .map(textOf),
                mainContent: textOf(main).slice(0, maxContent),
            };
        }
    }
}
"""

SCROLL = """
({ selector, direction, amount }) => {
    const target = selector ? document.querySelector(selector) : window;
    if (selector && !target) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    const deltas = {
        up: [0, -amount],
        down: [0, amount],
        left: [-amount, 0],
        right: [amount, 0],
    };
    const [dx, dy] = deltas[direction] || deltas.down;
    target.scrollBy(dx, dy);

    const result = {
        success: true,
        scrollX: window.scrollX,
        scrollY: window.scrollY,
        scrollWidth: document.documentElement.scrollWidth,
        scrollHeight: document.documentElement.scrollHeight,
    };
    if (selector) {
        result.elementScrollLeft = target.scrollLeft;
        result.elementScrollTop = target.scrollTop;
    }
    return result;
}
"""

FILE_INPUT_CHECK = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { ok: false, error: 'Element not found: ' + selector };
    }
    if (el.tagName !== 'INPUT' || el.type !== 'file') {
        return { ok: false, error: 'Element is not a file input: ' + selector };
    }
    return { ok: true };
}
"""

# Builds a File from base64 bytes and assigns it through DataTransfer
INJECT_FILE = """
({ selector, name, mime, data }) => {
    const input = document.querySelector(selector);
    if (!input) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    const binary = atob(data);
    const bytes = new Uint8Array(binary.length);
    for (let i = 0; i < binary.length; i++) {
        bytes[i] = binary.charCodeAt(i);
    }
    const file = new File([bytes], name, { type: mime });
    const transfer = new DataTransfer();
    transfer.items.add(file);
    input.files = transfer.files;
    input.dispatchEvent(new Event('input', { bubbles: true }));
    input.dispatchEvent(new Event('change', { bubbles: true }));
    return { success: true, fileName: file.name, size: file.size };
}
"""

CLICK_FOR_DOWNLOAD = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) {
        return { success: false, error: 'Element not found: ' + selector };
    }
    el.click();
    return { success: true };
}
"""

# Anchor with the download attribute; works from any loaded document
DOWNLOAD_URL = """
(url) => {
    const a = document.createElement('a');
    a.href = url;
    a.download = '';
    a.style.display = 'none';
    (document.body || document.documentElement).appendChild(a);
    a.click();
    a.remove();
    return true;
}
"""


def wrap_expression(script: str) -> str:
    """Wrap a script used as an expression, e.g. ``document.title``."""
    return (
        "async () => {\n"
        "    try {\n"
        f"        const data = await ({script}\n);\n"
        "        return { success: true, data };\n"
        "    } catch (e) {\n"
        "        return { success: false, error: String((e && e.message) || e) };\n"
        "    }\n"
        "}"
    )


def wrap_body(script: str) -> str:
    """Wrap a script used as a function body, e.g. ``const a = 1; return a``."""
    return (
        "async () => {\n"
        "    try {\n"
        f"        const data = await (async () => {{\n{script}\n}})();\n"
        "        return { success: true, data };\n"
        "    } catch (e) {\n"
        "        return { success: false, error: String((e && e.message) || e) };\n"
        "    }\n"
        "}"
    )
