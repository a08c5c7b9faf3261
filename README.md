# microws

Pure-Python building blocks for a small HTTP/1.1 and WebSocket server. There are
no third-party dependencies.

## Modules

- `microws.router`: `HttpRouter` is a method and URL pattern router. It handles
  static segments, `:parameter` segments and `*` wildcards, and has three
  priorities: `HIGH_PRIORITY`, `MEDIUM_PRIORITY` and `LOW_PRIORITY`.
  `add()` raises `RoutingError` when the same route is already registered at
  that priority, and `ValueError` when no method is given. `remove()` returns
  whether something was removed.
- `microws.httpparser`: `HttpParser` is an incremental HTTP/1.1 request parser
  that can be fed arbitrary pieces of a connection's stream. It handles bodies
  given by `content-length` and chunked bodies. Malformed input raises
  `HttpParserError`, whose `status` is the HTTP error to answer with (400, 431
  or 505). To accept a PROXY v2 header in front of requests, set `parser.proxy`
  to a `ProxyParser`.
- `microws.request`: `HttpRequest` is the parsed request head. It offers
  `method` (lower-cased), `case_sensitive_method`, `url`, `full_url`, `query`,
  `header(name)`, `parameter(index)` and iteration over `(name, value)` header
  pairs.
- `microws.proxy`: `ProxyParser` parses PROXY protocol v2 headers.
  `parse(data)` returns `(done, consumed)`, and `source_address` holds the
  reported 4 or 16 byte address.
- `microws.messageparser`: `parse_headers(buffer)` parses an RFC 822 style
  header block such as a multipart part's. It returns
  `(consumed, [(name, value), ...])`, or `None` when the block is incomplete or
  invalid.
- `microws.topictree`: `TopicTree` is a pub/sub registry. Messages from
  `publish()` are buffered per subscriber and delivered on `drain()`, and
  `publish_big()` hands a message straight to a callback. If a subscriber
  changes its subscriptions while it is marked as `iterating_subscriber`,
  `TopicTreeError` is raised.
- `microws.loop`: `Loop` is a per-thread loop core. It provides `defer()`, which
  is safe from any thread, pre and post iteration handlers, `iterate()`, `run()`,
  and a cached HTTP `Date` string in `date`. `http_date()` formats a timestamp.
  `CorkError` is raised if `corked_socket` is still set at the end of an
  iteration.
- `microws.responsedata`: `HttpResponseData` and the `ResponseState` flags hold
  the per-response state, handlers and write offset.
- `microws.wsconfig`: `WebSocketSettings`, `TopicTreeMessage`,
  `TopicTreeBigMessage` and `idle_timeout_components()` describe a WebSocket
  route's settings.

## Install

```
pip install .
```

## Routing

```python
from microws.router import HttpRouter

router = HttpRouter()

def profile(r):
    print("params:", r.parameters)
    return True   # handled; returning False falls through to the next match

router.add(["get"], "/:user/profile", profile, HttpRouter.MEDIUM_PRIORITY)
router.route("get", "/alice/profile")   # prints: params: ('alice',)
```

## Parsing requests

```python
from microws.httpparser import HttpParser, HttpParserError

parser = HttpParser()
conn = object()

def on_request(user, req):
    print(req.method, req.url, req.query, req.header("host"))
    return user           # return anything else to stop parsing

def on_data(user, chunk, fin):
    return user

try:
    parser.consume(b"GET /a?x=1 HTTP/1.1\r\nHost: example.com\r\n\r\n",
                   conn, on_request, on_data)
except HttpParserError as err:
    print("answer with", err.status)
```

The example prints `get /a x=1 example.com`. A request without a body gets one
`on_data` call with an empty chunk and `fin=True`. An incomplete request head
is kept and completed by later calls to `consume`.

## Publish / subscribe

```python
from microws.topictree import TopicTree

def deliver(subscriber, message, flags):
    print(message, flags)
    return False  # return True to stop draining this subscriber early

tree = TopicTree(deliver)
sub = tree.create_subscriber()
tree.subscribe(sub, "news")
tree.publish(None, "news", "hello")
tree.drain()
```

## Loop

```python
from microws.loop import Loop

loop = Loop.get()
loop.defer(lambda: print("later"))
loop.run()        # iterates until no deferred callbacks remain
print(loop.date)
```

## What this package does not do

There are no sockets here. The package has no listening server, no response
writer, no WebSocket frame parser and no permessage-deflate compression, and it
installs no command. `Loop` runs deferred callbacks and hooks but polls no I/O.
The parsers, router and topic tree are meant to be driven by your own network
code.

## Tests

```
pip install .[test]
pytest
```