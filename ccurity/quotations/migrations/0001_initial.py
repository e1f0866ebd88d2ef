# Generated manually
import django.db.models.deletion
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('services', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='QuotationTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('theme', models.CharField(choices=[('light', 'Claro'), ('dark', 'Oscuro')], default='light', max_length=10)),
                ('colors', models.JSONField(blank=True, default=dict)),
                ('font_family', models.CharField(blank=True, max_length=100, null=True)),
                ('logo_url', models.URLField(blank=True, max_length=500, null=True)),
                ('header_config', models.JSONField(blank=True, default=dict)),
                ('footer_config', models.JSONField(blank=True, default=dict)),
                ('css_config', models.JSONField(blank=True, default=dict)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'quotation_templates',
                'ordering': ['-is_default', 'name'],
            },
        ),
        migrations.CreateModel(
            name='Quotation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('DRAFT', 'Borrador'), ('SENT', 'Enviada'), ('ACCEPTED', 'Aceptada'), ('REJECTED', 'Rechazada'), ('EXPIRED', 'Expirada')], default='DRAFT', max_length=10)),
                ('valid_until', models.DateTimeField(blank=True, null=True)),
                ('subtotal', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('tax', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('notes', models.TextField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('folio', models.CharField(blank=True, max_length=50, null=True)),
                ('payment_type', models.CharField(choices=[('one_time', 'Pago único'), ('recurring', 'Recurrente')], default='one_time', max_length=10)),
                ('terms_content', models.TextField(blank=True, null=True)),
                ('privacy_notice', models.TextField(blank=True, null=True)),
                ('published_token', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('stripe_product_id', models.CharField(blank=True, max_length=100, null=True)),
                ('stripe_price_id', models.CharField(blank=True, max_length=100, null=True)),
                ('stripe_payment_link_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('stripe_payment_link_url', models.URLField(blank=True, max_length=500, null=True)),
                ('stripe_payment_intent_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('payment_status', models.CharField(blank=True, choices=[('pending', 'Pendiente'), ('paid', 'Pagado'), ('failed', 'Fallido'), ('refunded', 'Reembolsado')], max_length=10, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quotations', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='quotations.quotation')),
                ('service_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quotations', to='services.servicetype')),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quotations', to='quotations.quotationtemplate')),
            ],
            options={
                'db_table': 'quotations',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='QuotationTab',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('section', models.CharField(choices=[('equipos', 'Equipos'), ('materiales', 'Materiales'), ('mano_de_obra', 'Mano de obra')], max_length=20)),
                ('label', models.CharField(max_length=100)),
                ('position', models.PositiveIntegerField(default=0)),
                ('quotation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tabs', to='quotations.quotation')),
            ],
            options={
                'db_table': 'quotation_tabs',
                'ordering': ['section', 'position', 'id'],
            },
        ),
        migrations.CreateModel(
            name='QuotationTabLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quotation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tab_links', to='quotations.quotation')),
                ('source_tab', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outgoing_links', to='quotations.quotationtab')),
                ('target_tab', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='incoming_links', to='quotations.quotationtab')),
            ],
            options={
                'db_table': 'quotation_tab_links',
            },
        ),
        migrations.CreateModel(
            name='QuotationItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('section', models.CharField(blank=True, choices=[('equipos', 'Equipos'), ('materiales', 'Materiales'), ('mano_de_obra', 'Mano de obra')], max_length=20, null=True)),
                ('quantity', models.DecimalField(decimal_places=2, default=Decimal('1.00'), max_digits=10)),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('notes', models.TextField(blank=True, null=True)),
                ('is_custom', models.BooleanField(default=False)),
                ('custom_title', models.CharField(blank=True, max_length=255, null=True)),
                ('custom_description', models.TextField(blank=True, null=True)),
                ('custom_format', models.CharField(blank=True, max_length=10, null=True)),
                ('custom_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('concept', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quotation_items', to='catalog.concept')),
                ('quotation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='quotations.quotation')),
                ('tab', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to='quotations.quotationtab')),
            ],
            options={
                'db_table': 'quotation_items',
                'ordering': ['id'],
            },
        ),
    ]
