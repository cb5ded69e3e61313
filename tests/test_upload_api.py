from conftest import auth_headers

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _image(name="cover.png", content_type="image/png", data=PNG_BYTES):
    return (name, data, content_type)


def test_upload_image(client, make_user, image_host):
    resp = client.post(
        "/api/upload/image",
        files={"image": _image()},
        headers=auth_headers(make_user()),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Image uploaded successfully"
    assert body["publicId"] == "news-site/articles/img1"
    assert body["imageUrl"].startswith("https://res.cloudinary.com/")
    assert body["width"] == 1200

    _, options = image_host.uploaded[0]
    assert options["folder"] == "news-site/articles"
    assert options["transformation"][0] == {"width": 1200, "height": 630, "crop": "limit"}


def test_upload_requires_author(client, make_user):
    assert client.post("/api/upload/image", files={"image": _image()}).status_code == 401

    reader = make_user("reader", role="user")
    resp = client.post("/api/upload/image", files={"image": _image()}, headers=auth_headers(reader))
    assert resp.status_code == 403


def test_upload_rejects_non_images(client, make_user, image_host):
    headers = auth_headers(make_user())

    resp = client.post("/api/upload/image", files={"image": _image("notes.txt", "text/plain", b"hello")}, headers=headers)
    assert resp.status_code == 400

    resp = client.post("/api/upload/image", files={"image": _image("cover.png", "application/pdf")}, headers=headers)
    assert resp.status_code == 400

    assert image_host.uploaded == []


def test_upload_rejects_oversized_file(client, make_user, monkeypatch):
    from newsdesk.services import image_host as host

    monkeypatch.setattr(host, "MAX_IMAGE_BYTES", 16)

    resp = client.post("/api/upload/image", files={"image": _image()}, headers=auth_headers(make_user()))

    assert resp.status_code == 400


def test_upload_failure_is_reported(client, make_user, image_host):
    image_host.fail_upload = True

    resp = client.post("/api/upload/image", files={"image": _image()}, headers=auth_headers(make_user()))

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Upload failed"


def test_upload_multiple_images(client, make_user):
    files = [
        ("images", _image("one.png")),
        ("images", _image("two.jpg", "image/jpeg")),
    ]

    resp = client.post("/api/upload/images", files=files, headers=auth_headers(make_user()))

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Successfully uploaded 2 out of 2 images"
    assert [img["originalName"] for img in body["images"]] == ["one.png", "two.jpg"]


def test_upload_more_than_ten_images_is_rejected(client, make_user):
    files = [("images", _image(f"img{i}.png")) for i in range(11)]

    resp = client.post("/api/upload/images", files=files, headers=auth_headers(make_user()))

    assert resp.status_code == 400


def test_upload_from_url(client, make_user, image_host):
    headers = auth_headers(make_user())

    resp = client.post(
        "/api/upload/from-url",
        json={"imageUrl": "https://images.wire.com/photos/storm.JPG", "folder": "news-site/wire"},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json()["originalUrl"] == "https://images.wire.com/photos/storm.JPG"
    source, options = image_host.uploaded[0]
    assert source == "https://images.wire.com/photos/storm.JPG"
    assert options["folder"] == "news-site/wire"

    bad = client.post("/api/upload/from-url", json={"imageUrl": "https://images.wire.com/page.html"}, headers=headers)
    assert bad.status_code == 400


def test_delete_uploaded_image(client, make_user, image_host):
    headers = auth_headers(make_user())

    resp = client.delete("/api/upload/image/news-site/articles/abc", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["publicId"] == "news-site/articles/abc"
    assert image_host.destroyed == ["news-site/articles/abc"]

    image_host.destroy_result = "not found"
    assert client.delete("/api/upload/image/missing", headers=headers).status_code == 404

    image_host.destroy_result = "error"
    assert client.delete("/api/upload/image/broken", headers=headers).status_code == 400
