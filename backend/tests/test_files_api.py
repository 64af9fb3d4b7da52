import io

from PIL import Image

from study_portal.config import settings

from conftest import ADMIN


def _png() -> bytes:
    img = Image.new("RGB", (32, 16), "white")
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


def _upload(client, name="notes.txt", content=b"chapter 1", content_type="text/plain", auth=ADMIN, **meta):
    data = {'title': 'Chapter 1 notes', 'subject': 'math', 'grade': '12', 'semester': 'first'}
    data.update(meta)
    return client.post('/api/files', files={'file': (name, content, content_type)}, data=data, auth=auth)


def test_upload_stores_metadata_and_binary(client, upload_dir):
    r = _upload(client)
    assert r.status_code == 201
    body = r.json()
    assert body['id'] == 1
    assert body['title'] == 'Chapter 1 notes'
    assert body['subject'] == 'math'
    assert body['file_size'] == len(b"chapter 1")
    assert body['file_type'] == 'text/plain'
    assert body['file_name'].startswith('file-') and body['file_name'].endswith('.txt')
    assert body['file_path'] == f"/api/files/download/{body['file_name']}"
    assert body['upload_date']
    assert (upload_dir / body['file_name']).read_bytes() == b"chapter 1"

    fetched = client.get(f"/api/files/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == body


def test_upload_requires_admin(client):
    assert _upload(client, auth=None).status_code == 401


def test_upload_rejects_bad_input(client):
    assert _upload(client, name='run.exe', content_type='application/x-msdownload').status_code == 415
    assert _upload(client, name='pic.png', content=b'not a png', content_type='image/png').status_code == 415
    assert _upload(client, subject='history').status_code == 422
    assert _upload(client, grade='11').status_code == 422


def test_upload_accepts_real_image(client):
    r = _upload(client, name='diagram.png', content=_png(), content_type='image/png')
    assert r.status_code == 201
    assert r.json()['file_name'].endswith('.png')


def test_upload_size_limit(client, monkeypatch):
    monkeypatch.setattr(settings, 'MAX_UPLOAD_BYTES', 8)
    assert _upload(client, content=b'123456789').status_code == 413


def test_list_files_with_filters(client):
    _upload(client, subject='math', semester='first')
    _upload(client, subject='math', semester='second')
    _upload(client, subject='physics', semester='first')
    assert len(client.get('/api/files').json()) == 3
    assert len(client.get('/api/files', params={'grade': 'all', 'subject': 'all', 'semester': 'all'}).json()) == 3
    only = client.get('/api/files', params={'grade': '12', 'subject': 'math', 'semester': 'first'}).json()
    assert [(f['subject'], f['semester']) for f in only] == [('math', 'first')]
    assert len(client.get('/api/files', params={'subject': 'math'}).json()) == 2


def test_update_file_metadata(client):
    created = _upload(client).json()
    r = client.put(f"/api/files/{created['id']}", json={'title': 'Renamed', 'semester': 'second'}, auth=ADMIN)
    assert r.status_code == 200
    body = r.json()
    assert body['title'] == 'Renamed'
    assert body['semester'] == 'second'
    assert body['subject'] == created['subject']
    assert body['file_name'] == created['file_name']
    assert client.put('/api/files/999', json={'title': 'x'}, auth=ADMIN).status_code == 404
    assert client.put(f"/api/files/{created['id']}", json={'subject': 'history'}, auth=ADMIN).status_code == 422
    assert client.put(f"/api/files/{created['id']}", json={'title': 'x'}).status_code == 401


def test_download_and_preview(client):
    created = _upload(client).json()
    name = created['file_name']
    d = client.get(f'/api/files/download/{name}')
    assert d.status_code == 200
    assert d.content == b"chapter 1"
    assert d.headers['content-disposition'].startswith('attachment')
    p = client.get(f'/api/files/preview/{name}')
    assert p.status_code == 200
    assert p.headers['content-type'].startswith('text/plain')
    assert p.headers['content-disposition'].startswith('inline')
    assert client.get('/api/files/download/missing.pdf').status_code == 404


def test_delete_file_removes_record_and_binary(client, upload_dir):
    created = _upload(client).json()
    r = client.delete(f"/api/files/{created['id']}", auth=ADMIN)
    assert r.status_code == 200
    assert client.get(f"/api/files/{created['id']}").status_code == 404
    assert not (upload_dir / created['file_name']).exists()
    assert client.delete(f"/api/files/{created['id']}", auth=ADMIN).status_code == 404


def test_get_unknown_file(client):
    assert client.get('/api/files/12345').status_code == 404
