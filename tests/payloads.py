"""Request payloads and helpers shared by the API tests."""

def patient_payload(**overrides):
    data = {
        "firstName": "Ana",
        "lastName": "Ruiz",
        "email": "ana@example.com",
        "password": "longenough1",
        "phoneNumber": "+34600111222",
        "dateOfBirth": "1990-05-01",
        "gender": "female",
    }
    data.update(overrides)
    return data


def professional_payload(**overrides):
    data = {
        "firstName": "Luis",
        "lastName": "Gomez",
        "email": "luis@example.com",
        "password": "cardiopass1",
        "phoneNumber": "+34600333444",
        "dateOfBirth": "1980-02-10",
        "gender": "male",
        "specialty": "Cardiology",
        "experience": 12,
        "licenseNumber": "LIC-1001",
        "education": "Universidad de Madrid",
        "consultationFee": "150.50",
    }
    data.update(overrides)
    return data


def login(client, email, password):
    return client.post("/auth/login", json={"email": email, "password": password})


def auth_headers(client, email="ana@example.com", password="longenough1"):
    token = login(client, email, password).json()["token"]
    return {"Authorization": f"Bearer {token}"}
