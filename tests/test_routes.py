import httpx

CHAT_BODY = {"messages": [{"role": "user", "content": "Een koffie, alstublieft"}]}


def test_health_and_info(make_client):
	client = make_client()
	assert client.get("/health").json() == {"status": "ok"}
	info = client.get("/info").json()
	assert info == {"status": "ok", "llm_configured": True, "breaker_open": False}


def test_chat_returns_structured_reply(make_client, llm):
	client = make_client()
	response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
	assert response.status_code == 200
	data = response.json()
	assert data["ai_reply"] == "Natuurlijk! Met melk?"
	assert data["suggestions"][1] == {"dutch": "Nee, zwart.", "english": ""}
	assert data["new_words"][0]["dutch"] == "natuurlijk"
	assert len(llm.calls) == 1


def test_chat_topic_slug_with_underscores(make_client):
	client = make_client()
	assert client.post("/chat/ordering_cafe", json={"user_input": "Hallo"}).status_code == 200


def test_chat_unknown_topic(make_client, llm):
	client = make_client()
	response = client.post("/chat/space-travel", json=CHAT_BODY)
	assert response.status_code == 404
	data = response.json()
	assert data["error"] == "Failed to load prompt configuration"
	assert data["ai_reply"] and len(data["suggestions"]) == 3
	assert llm.calls == []


def test_chat_without_messages(make_client, llm):
	client = make_client()
	response = client.post("/chat/ordering-cafe", json={"messages": []})
	assert response.status_code == 400
	data = response.json()
	assert data["error"] == "No messages or user input provided"
	assert data["suggestions"][0]["dutch"] == "Hallo, hoe gaat het?"
	assert llm.calls == []


def test_chat_with_invalid_json(make_client):
	client = make_client()
	response = client.post(
		"/chat/ordering-cafe",
		content=b"{not json",
		headers={"content-type": "application/json"},
	)
	assert response.status_code == 400


def test_chat_rate_limit(make_client, llm):
	client = make_client(CHAT_MAX_REQUESTS=2)
	for _ in range(2):
		assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 200
	response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
	assert response.status_code == 429
	assert response.headers["Retry-After"] == "60"
	assert response.headers["X-RateLimit-Limit"] == "2"
	assert response.headers["X-RateLimit-Remaining"] == "0"
	data = response.json()
	assert data["retryAfter"] == 60
	assert data["error"] == "Too many requests"
	assert data["ai_reply"]
	assert len(llm.calls) == 2


def test_rate_limits_are_per_endpoint(make_client):
	client = make_client(CHAT_MAX_REQUESTS=1)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 200
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 429
	assert client.get("/topics").status_code == 200


def test_forwarded_clients_have_separate_quotas(make_client):
	client = make_client(CHAT_MAX_REQUESTS=1)
	first = {"X-Forwarded-For": "10.0.0.1, 172.16.0.1"}
	second = {"X-Forwarded-For": "10.0.0.2"}
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY, headers=first).status_code == 200
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY, headers=first).status_code == 429
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY, headers=second).status_code == 200


def test_window_slides_with_clock(make_client, clock):
	client = make_client(CHAT_MAX_REQUESTS=1)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 200
	clock.advance(30)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 429
	# the rejected attempt at t+30 still occupies the window
	clock.advance(31)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 429
	clock.advance(61)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 200


def test_breaker_opens_and_recovers(make_client, llm, clock):
	client = make_client(BREAKER_FAILURE_THRESHOLD=2)
	llm.outputs = [httpx.ConnectError("connection refused"), httpx.ConnectError("connection refused")]

	for _ in range(2):
		response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
		assert response.status_code == 503
		assert response.json()["error"] == "Upstream unavailable"

	response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
	assert response.status_code == 503
	assert response.json()["error"] == "Service temporarily unavailable"
	assert response.headers["Retry-After"] == "30"
	assert len(llm.calls) == 2
	assert client.get("/info").json()["breaker_open"] is True

	# the breaker is shared by every guarded endpoint
	response = client.post("/translate", json={"word": "koffie", "context": "Een koffie"})
	assert response.status_code == 503
	assert response.json()["translation"] == ""

	clock.advance(31)
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 200
	assert client.app.state.guards["chat"].breaker.failure_count == 0


def test_malformed_reply_is_502_and_not_counted(make_client, llm):
	client = make_client()
	llm.outputs = ["Hallo! Wat wilt u drinken?"]
	response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
	assert response.status_code == 502
	data = response.json()
	assert data["error"] == "Invalid upstream response"
	assert data["ai_reply"]
	assert client.app.state.guards["chat"].breaker.failure_count == 0


def test_malformed_reply_counts_when_configured(make_client, llm):
	client = make_client(COUNT_MALFORMED_AS_FAILURE=True)
	llm.outputs = ["not json"]
	assert client.post("/chat/ordering-cafe", json=CHAT_BODY).status_code == 502
	assert client.app.state.guards["chat"].breaker.failure_count == 1


def test_slow_upstream_times_out(make_client, llm):
	client = make_client(REQUEST_TIMEOUT_MS=50)
	llm.outputs = [1.0]
	response = client.post("/chat/ordering-cafe", json=CHAT_BODY)
	assert response.status_code == 503
	assert response.json()["error"] == "Upstream timeout"
	assert client.app.state.guards["chat"].breaker.failure_count == 1


def test_correct(make_client, llm):
	client = make_client()
	llm.outputs = ['{"corrected": "Ik heb een hond.", "translation": "I have a dog.", "corrections": []}']
	response = client.post("/correct", json={"text": "ik hebt een hond"})
	assert response.status_code == 200
	data = response.json()
	assert data["original"] == "ik hebt een hond"
	assert data["corrected"] == "Ik heb een hond."


def test_correct_requires_text(make_client, llm):
	client = make_client()
	response = client.post("/correct", json={"text": "   "})
	assert response.status_code == 400
	assert response.json()["detail"] == "Text is required"
	assert llm.calls == []


def test_correct_upstream_failure_echoes_text(make_client, llm):
	client = make_client()
	llm.outputs = [httpx.ReadError("reset")]
	response = client.post("/correct", json={"text": "ik hebt een hond"})
	assert response.status_code == 503
	data = response.json()
	assert data["original"] == "ik hebt een hond"
	assert data["corrected"] == "ik hebt een hond"


def test_translate_and_cache(make_client, llm):
	client = make_client()
	llm.outputs = ['{"translation": "the bill"}']
	body = {"word": "rekening", "context": "Mag ik de rekening?"}
	first = client.post("/translate", json=body)
	second = client.post("/translate", json=body)
	assert first.json() == {"translation": "the bill"}
	assert second.json() == {"translation": "the bill", "cached": True}
	assert len(llm.calls) == 1


def test_translate_requires_word_and_context(make_client):
	client = make_client()
	response = client.post("/translate", json={"word": "rekening"})
	assert response.status_code == 400
	assert response.json()["detail"] == "Word and context are required"


def test_topics(make_client):
	client = make_client()
	topics = client.get("/topics").json()
	assert len(topics) == 9
	assert {"slug", "title", "description"} == set(topics[0])

	detail = client.get("/topics/ordering-cafe").json()
	assert detail["title"] == "Ordering at a Café"
	assert detail["initial_message"]["dutch"].startswith("Hallo")
	assert client.get("/topics/nope").status_code == 404


def test_translation_cache_hits_leave_breaker_alone(make_client, llm):
	client = make_client()
	body = {"word": "rekening", "context": "Mag ik de rekening?"}
	llm.outputs = ['{"translation": "the bill"}'] + [httpx.ConnectError("connection refused")] * 4
	assert client.post("/translate", json=body).status_code == 200
	for _ in range(4):
		assert client.post("/correct", json={"text": "ik hebt een hond"}).status_code == 503
	breaker = client.app.state.guards["translate"].breaker
	assert breaker.failure_count == 4

	for _ in range(4):
		assert client.post("/translate", json=body).json() == {"translation": "the bill", "cached": True}
	assert breaker.failure_count == 4
	assert len(llm.calls) == 5


def test_non_string_model_output_gets_fallback(make_client, llm):
	client = make_client()
	llm.outputs = [5]
	response = client.post("/correct", json={"text": "ik hebt een hond"})
	assert response.status_code == 502
	data = response.json()
	assert data["error"] == "Invalid upstream response"
	assert data["corrected"] == "ik hebt een hond"
