"""
JavaScript injected into recorded pages.

The listener stays thin on purpose: it forwards each relevant DOM event
together with a snapshot of the document, and all reduction happens in
Python. Element ids live in a page-level WeakMap, so the page markup is
never modified.
"""

BINDING_NAME = "__stepforgeRecord"

_BINDING_PLACEHOLDER = "__BINDING__"

_LISTENER_TEMPLATE = r"""
(function () {
    if (window.__stepforgeCleanup) {
        window.__stepforgeCleanup();
    }

    const ids = window.__stepforgeIds || (window.__stepforgeIds = new WeakMap());
    const SKIP_CONTENT = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT', 'TEMPLATE']);
    const EVENTS = ['input', 'click', 'change', 'blur', 'keydown'];

    function rid(el) {
        let id = ids.get(el);
        if (id === undefined) {
            window.__stepforgeSeq = (window.__stepforgeSeq || 0) + 1;
            id = window.__stepforgeSeq;
            ids.set(el, id);
        }
        return id;
    }

    function serializeChildren(nodes) {
        const out = [];
        for (const child of nodes) {
            if (child.nodeType === Node.ELEMENT_NODE) {
                out.push(serialize(child));
            } else if (child.nodeType === Node.TEXT_NODE) {
                out.push(child.nodeValue);
            }
        }
        return out;
    }

    function serialize(el) {
        const box = el.getBoundingClientRect();
        const attrs = {};
        for (const attr of el.attributes) {
            attrs[attr.name] = attr.value;
        }
        const node = {
            rid: rid(el),
            tag: el.localName,
            attrs: attrs,
            rect: [box.left, box.top, box.width, box.height],
            children: SKIP_CONTENT.has(el.tagName) ? [] : serializeChildren(el.childNodes)
        };
        if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA' || el.tagName === 'SELECT') {
            node.value = el.value;
        }
        if (el.tagName === 'INPUT' && (el.type === 'checkbox' || el.type === 'radio')) {
            node.checked = el.checked;
        }
        if (el.tagName === 'SELECT') {
            const option = el.options[el.selectedIndex];
            node.selectedText = option ? option.text : null;
        }
        if (el.shadowRoot) {
            node.shadow = serializeChildren(el.shadowRoot.childNodes);
        }
        return node;
    }

    window.__stepforgeSnapshot = function () {
        const focused = document.activeElement;
        return {
            url: window.location.href,
            focused: focused && focused !== document.body ? rid(focused) : null,
            root: serialize(document.documentElement)
        };
    };

    function ancestry(el) {
        const path = [];
        let current = el;
        while (current && current.nodeType === Node.ELEMENT_NODE && current !== document.body) {
            path.push(rid(current));
            current = current.parentElement;
        }
        return path;
    }

    function send(message) {
        try {
            const binding = window['__BINDING__'];
            if (typeof binding !== 'function') {
                return;
            }
            const pending = binding(JSON.stringify(message));
            if (pending && typeof pending.catch === 'function') {
                pending.catch(function (err) {
                    console.debug('[stepforge] host unavailable', err);
                });
            }
        } catch (err) {
            console.debug('[stepforge] send failed', err);
        }
    }

    function handle(e) {
        const target = e.target;
        if (!target || target.nodeType !== Node.ELEMENT_NODE) {
            return;
        }
        if (target === document.documentElement || target === document.body) {
            return;
        }
        if (e.type === 'keydown' && e.key !== 'Enter') {
            return;
        }
        const message = {
            type: e.type,
            target: rid(target),
            path: ancestry(target),
            key: e.key || null,
            x: typeof e.clientX === 'number' ? e.clientX : null,
            y: typeof e.clientY === 'number' ? e.clientY : null,
            timestamp: performance.timeOrigin + performance.now(),
            url: window.location.href
        };
        if (e.type === 'input') {
            message.value = typeof target.value === 'string' ? target.value : null;
        } else {
            message.snapshot = window.__stepforgeSnapshot();
        }
        send(message);
    }

    for (const type of EVENTS) {
        document.addEventListener(type, handle, { capture: true, passive: true });
    }

    window.__stepforgeCleanup = function () {
        for (const type of EVENTS) {
            document.removeEventListener(type, handle, { capture: true });
        }
        delete window.__stepforgeCleanup;
    };
})();
"""

SNAPSHOT_JS = "() => window.__stepforgeSnapshot ? window.__stepforgeSnapshot() : null"

CLEANUP_JS = "() => { if (window.__stepforgeCleanup) { window.__stepforgeCleanup(); } }"


def listener_script(binding_name: str = BINDING_NAME) -> str:
    """Listener source bound to the given exposed function name."""
    return _LISTENER_TEMPLATE.replace(_BINDING_PLACEHOLDER, binding_name)
